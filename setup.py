from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="ella-rises-portal",
    version="1.0.0",
    description="Ella Rises participant, event, survey and donation portal",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=[
        'admin',
        'app',
        'app_models',
        'auth',
        'build',
        'config',
        'csv_export',
        'errors',
        'extensions',
        'forms',
        'health',
        'id_allocation',
        'identity',
        'pagination',
        'queries',
        'routes',
        'scoring',
        'security',
        'wsgi',
    ],
    include_package_data=True,
    install_requires=[
        'Flask>=3.0',
        'Flask-SQLAlchemy>=3.1',
        'Flask-WTF>=1.2',
        'python-dotenv>=1.0',
        'SQLAlchemy>=2.0',
        'WTForms>=3.1',
        'Werkzeug>=3.0',
        'Jinja2>=3.1',
        'MarkupSafe>=2.1',
        'click>=8.1',
        'gunicorn>=21.2',
        'psycopg2-binary>=2.9.9',
        'bcrypt>=4.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.4',
        ],
    },
    python_requires='>=3.9',
    classifiers=[
        "Programming Language :: Python :: 3",
        "Framework :: Flask",
        "Operating System :: OS Independent",
    ],
    entry_points={
        'console_scripts': [
            'ella-rises=wsgi:main',
            'ella-rises-init-db=build:main',
        ],
    },
)
