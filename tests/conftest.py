# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from risk_register.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """data_store: ./data/risk_data.json
page_size: 2
upload:
  required_headers:
    - Sr#
    - Business Process
    - Risk Description
    - Risk Value
    - Risk Treatment Option
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "risk_register.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def register_rows() -> list[dict]:
    return [
        {
            "Sr#": "1",
            "Business Process": "Finance",
            "Risk Description": "Operational risk event in payments",
            "Risk Value": "12",
            "Risk Treatment Option": "Accept",
        },
        {
            "Sr#": "2",
            "Business Process": "IT Operations",
            "Risk Description": "Ransomware outage",
            "Risk Value": "150",
            "Risk Treatment Option": "Treat",
        },
        {
            "Sr#": "3",
            "Business Process": "HR",
            "Risk Description": "Key person dependency",
            "Risk Value": "N/A",
            "Risk Treatment Option": "Monitor",
        },
    ]


@pytest.fixture()
def register_csv(temp_workdir: Path, register_rows: list[dict]) -> Path:
    import pandas as pd

    path = temp_workdir / "register.csv"
    pd.DataFrame(register_rows).to_csv(path, index=False)
    return path
