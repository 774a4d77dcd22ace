from setuptools import setup


setup(
    name="cte-reconciler",
    version="0.3.0",
    description="Reconcile Brazilian freight documents (CT-e) from operational sheets against financial exports",
    packages=["cte_reconciler"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cte-reconciler=cte_reconciler.cli:main",
        ]
    },
)
