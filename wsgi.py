# ==============================================================================
# PUNTO DE ENTRADA WSGI
# ==============================================================================
# gunicorn -w 1 --threads 4 -b 0.0.0.0:5000 wsgi:app
#
# El store JSON serializa escrituras con un lock de proceso: usar un solo
# worker (con threads) mientras el almacenamiento sea local.
# ==============================================================================

import atexit

from app_pdv.main import create_app
from app_pdv.performance_logger import write_function_stats_report

app = create_app()

# Resumen de funciones perfiladas al apagar el servidor
atexit.register(write_function_stats_report)

if __name__ == "__main__":
    config = app.extensions['app_pdv'].config
    app.run(host=config.host, port=config.port, debug=config.debug)
