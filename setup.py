from setuptools import setup, find_packages

setup(
    name="pair-spread-analytics",
    version="1.0.0",
    author="Jose Orlando Bobadilla Fuentes",
    description=(
        "Pair-trading spread analytics: ratio, rolling OLS, Kalman and "
        "double z-score spreads, ADF stationarity testing with AIC lag "
        "selection, half-life and Hurst diagnostics"
    ),
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.24.0", "scipy>=1.11.0", "pandas>=2.0.0",
        "statsmodels>=0.14.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    keywords=[
        "pairs-trading", "cointegration", "augmented-dickey-fuller",
        "kalman-filter", "mean-reversion", "z-score",
    ],
)
