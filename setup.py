"""
Provides project-level commands. Commands are run via `python setup.py <command> [args]`

Commands available:

- apidoc: regenerate reST docs for inline pydoc comments
"""

from setuptools import setup, Command

import os


class RunInRootCommand(Command):
    user_options = []

    def initialize_options(self):
        self.cwd = None

    def finalize_options(self):
        self.cwd = os.getcwd()

    def run(self):
        assert os.getcwd() == self.cwd, 'Must be in package root: %s' % self.cwd
        self.runcmd()

    def runcmd(self):
        pass


class ApiDocCommand(RunInRootCommand):
    description = "regenerates the API docs"

    def runcmd(self):
        os.system('"sphinx-apidoc" -f -e -o docs/apidoc src/iocpgateway')


setup(
    name='iocp-gateway-py',
    version='0.1.0',
    description='Bridges IOCP serial devices to a SIOC server over TCP.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['iocpgateway', 'iocpgateway.conduit', 'iocpgateway.config', 'iocpgateway.connector',
              'iocpgateway.protocol', 'iocpgateway.support'],
    package_data={'iocpgateway.config': ['*.cfg']},
    python_requires='>=3.8',
    install_requires=[
        'pyserial>=3.4',
        'configobj>=5.0.9',
    ],
    extras_require={
        'test': ['PyHamcrest', 'pytest', 'timeout-decorator'],
    },
    entry_points={
        'console_scripts': ['iocp-gateway=iocpgateway.__main__:main'],
    },
    zip_safe=False,
    cmdclass={
        'apidoc': ApiDocCommand,
    }
)
