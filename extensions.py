from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect

# Bound to the app in create_app()
db = SQLAlchemy()
csrf = CSRFProtect()
