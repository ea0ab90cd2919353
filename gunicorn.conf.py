# use in gunicorn as: env/bin/gunicorn files_manager.api:app -c gunicorn.conf.py
# job workers run separately: python -m files_manager worker

# Workers
workers = 5
worker_class = 'uvicorn.workers.UvicornWorker'

# Socket
bind = 'localhost:5000'

# Logging
# loglevel = 'debug'
# accesslog = '/tmp/files_manager_access_log'
# errorlog = '/tmp/files_manager_error_log'
