import setuptools

with open("README.md", "r", encoding = "utf-8") as f:
    long_description = f.read()

install_requires = ['scikit-learn>=1.4', 'numpy', 'pandas', 'scipy', 'joblib',
                    'loguru', 'matplotlib', 'seaborn']

setuptools.setup(
    name = 'rfprox',
    version = '0.1.0',
    description = 'Random forest proximities, MDS embeddings and medoid clustering for multi-omics data',
    long_description = long_description,
    long_description_content_type = 'text/markdown',
    license = 'GNU-V3',
    packages = ['rfprox'],
    python_requires = '>=3.8',
    install_requires = install_requires,
    extras_require = {'test': ['pytest']}
)
