# run.py
import os
from dotenv import load_dotenv
load_dotenv()

from medvault_pkg import create_app
from medvault_pkg.sockets import socketio
from medvault_pkg.reminders.services import start_reminder_service

config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)
app.logger.info(f"run.py: FLASK_ENV is '{os.environ.get('FLASK_ENV')}', config_name is '{config_name}'")

if __name__ == '__main__':
    if app.config.get('ENABLE_REMINDER_SERVICE'):
        start_reminder_service(app)
    socketio.run(app, host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
