from setuptools import setup
setup(name='drydock',
    version='0.2.0',
    description='Create and destroy local environments of containers, networks and clusters',
    author='Kimbro Staken',
    author_email='kstaken@kstaken.com',
    packages=['drydock', 'drydock.providers'],
    scripts=['bin/drydock'],
    python_requires='>=3.8',
    install_requires=[
        'docker',
        'PyYAML',
        'requests',
        'cmdln',
        'kubernetes',
    ],
)
