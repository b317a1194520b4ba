"""Configuration model for the ingestkit-xlsx importer.

Provides ``XlsxImportConfig`` with all tunable parameters and sensible
defaults.  Supports loading overrides from YAML or JSON files via the
``from_file()`` classmethod.
"""

from __future__ import annotations

import json
import pathlib

from pydantic import BaseModel


class XlsxImportConfig(BaseModel):
    """All tunable parameters with sensible defaults for .xlsx import."""

    # --- Identity ---
    parser_version: str = "ingestkit_xlsx:1.0.0"
    tenant_id: str | None = None

    # --- Security / Resource Limits ---
    max_file_size_mb: int = 100
    max_uncompressed_mb: int = 1024
    max_archive_members: int = 10_000
    max_cells: int = 50_000_000

    # --- Dataset conventions ---
    varname_capacity: int = 32
    label_capacity: int = 16

    # --- Structural heuristics ---
    obs_label_tokens: list[str] = [
        "obs",
        "date",
        "year",
        "period",
        "observation",
        "observation_date",
    ]
    na_tokens: list[str] = [
        "",
        "NA",
        "N.A.",
        "n.a.",
        "na",
        "n/a",
        "N/A",
        "#N/A",
        "NaN",
        ".NaN",
        ".",
        "..",
        "-999",
        "-9999",
        "-",
    ]

    # --- Dates ---
    detect_dates: bool = True
    date_format: str = "%Y-%m-%d"

    # --- Logging / PII Safety ---
    log_sample_data: bool = False

    def is_obs_label(self, text: str | None) -> bool:
        """Return True if *text* looks like an observation-label header.

        Blank text always qualifies.  One layer of surrounding quotes is
        ignored and the comparison is case-insensitive.
        """
        if text is None:
            return True
        s = text.strip()
        if s in ('""', "''"):
            return True
        if s[:1] in ('"', "'"):
            s = s[1:]
        if s[-1:] in ('"', "'"):
            s = s[:-1]
        if not s:
            return True
        if len(s) > self.varname_capacity - 1:
            return False
        return s.lower() in {tok.lower() for tok in self.obs_label_tokens}

    def is_na_token(self, text: str) -> bool:
        """Return True if *text* is a recognized missing-value token."""
        return text.strip() in self.na_tokens

    @classmethod
    def from_file(cls, path: str) -> XlsxImportConfig:
        """Load configuration from a YAML or JSON file.

        File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
        ``.json`` for JSON.  Any keys present in the file override the
        corresponding defaults; keys not present retain their defaults.
        """
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        suffix = file_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError(
                    "pyyaml is required to load YAML config files. "
                    "Install it with: pip install pyyaml"
                ) from exc
            with open(file_path) as fh:
                data = yaml.safe_load(fh)
        elif suffix == ".json":
            with open(file_path) as fh:
                data = json.load(fh)
        else:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        if data is None:
            data = {}

        return cls(**data)
