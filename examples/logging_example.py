"""Demonstrates how to enable and configure logging in adoptkit.

adoptkit logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle``. The handle can be used as a context manager
(``with enable_logging(): ...``) or disabled manually via ``handle.disable()``.
When the last active handle is disabled, adoptkit logging is automatically turned off.

Key concepts shown here:

- ``level``: controls the minimum log level. The custom ``STAGE`` level
  (numeric value 25, between INFO and WARNING) marks the start of each pipeline
  stage and is the default. ``"INFO"`` adds stage results such as the selected
  complexity value and held-out accuracy.
- ``log_format``: ``"short"`` shows ``timestamp | level | function - message``;
  ``"full"`` adds the module and line number.
- Failure isolation: a service that cannot be trained (here one with no
  adopters) is logged as a warning and reported as a failure while the other
  services still run.
"""

import numpy as np
import polars as pl

from adoptkit import CrossValidationConfig, ServiceConfig, enable_logging, load_settings, run_pipeline
from adoptkit.reporting import render_run

generator = np.random.default_rng(0)
row_count = 600
institutions = pl.DataFrame({
    "Institution": [f"Institution {i}" for i in range(row_count)],
    "State": generator.choice(["CA", "NY", "TX", "MA"], row_count),
    "AdmissionRate": generator.uniform(0.05, 1.0, row_count),
    "Degrees": generator.choice(["1", "2", "3", "4"], row_count),
    "TotalTuition": generator.uniform(5000, 50000, row_count),
    "AdditionalFees": generator.uniform(3000, 40000, row_count),
})

settings = load_settings(
    env_file=None,
    train_size=450,
    test_size=150,
    cv=CrossValidationConfig(folds=5, repeats=2, tune_length=5),
    services=[
        ServiceConfig(name="GitHub", positive_count=50, label_seed=1),
        ServiceConfig(name="Nobody", positive_count=0, label_seed=2),
    ],
)

# Enable logging at INFO level (and above) with full log format for better visibility of log details
with enable_logging(level="INFO", log_format="full"):
    outcomes = run_pipeline(institutions, settings)

# Logging automatically disabled here
print(render_run(outcomes))
