"""Install the SQL-backed session store."""

from setuptools import setup, find_packages

setup(
    name='mysql-session-store',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    python_requires='>=3.8',
    install_requires=[
        "sqlalchemy>=1.4",
        "pyjwt>=2.0",
        "pytz",
        "flask",
        "werkzeug",
        "python-json-logger"
    ],
    extras_require={
        'mysql': ["mysqlclient"],
        'test': ["pytest", "hypothesis"]
    },
    zip_safe=False
)
