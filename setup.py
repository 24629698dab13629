from setuptools import setup


setup(
    name="attendance-merge",
    version="0.1.0",
    description="Merge attendance/access log exports and reconcile deletion records against entries",
    packages=["attendance_merge"],
    python_requires=">=3.10",
    install_requires=[
        "pandas>=2.0",
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
            "attendance-merge=attendance_merge.cli:main",
        ]
    },
)
