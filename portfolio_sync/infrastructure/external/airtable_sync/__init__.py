"""
Acceso de solo lectura a Airtable para el pipeline de portfolio.

Diseñado para ejecutarse como job (cron / build del sitio):
- Snapshot barato por tabla (solo id + Last Modified).
- Fetch selectivo por lotes de ids para registros nuevos o modificados.
- Cuota excedida se propaga sin reintentar; errores transitorios se
  reintentan con backoff acotado en el cliente.
"""
