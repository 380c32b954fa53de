"""WSGI entry point: gunicorn -c gunicorn_config.py wsgi:application"""

from app import create_app

application = create_app()


def main():
    """Run the development server (console script entry point)."""
    application.run(host='0.0.0.0', port=application.config['PORT'])


if __name__ == "__main__":
    main()
