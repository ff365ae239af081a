import io
import sys

from setuptools import find_packages, setup

with io.open('calysto_cesil/_version.py', encoding="utf-8") as fid:
    for line in fid:
        if line.startswith('__version__'):
            __version__ = line.strip().split()[-1][1:-1]
            break

with open('README.md') as f:
    readme = f.read()

setup(name='calysto_cesil',
      version=__version__,
      description='A CESIL assembler, virtual machine and Jupyter kernel based on MetaKernel',
      long_description=readme,
      long_description_content_type='text/markdown',
      install_requires=["metakernel", "jupyter_client"],
      extras_require={"test": ["pytest"]},
      packages=find_packages(include=["calysto_cesil", "calysto_cesil.*"]),
      classifiers = [
          'Framework :: IPython',
          'License :: OSI Approved :: BSD License',
          'Programming Language :: Python :: 3',
          'Topic :: System :: Shells',
      ]
)
