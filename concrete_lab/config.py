"""
Configuration: column registry, placeholders, thresholds, storage settings.

COLUMN_MAP maps each normalised spreadsheet header to its canonical sample
field. Headers are normalised by loaders.utils.normalise_header before lookup.
"""

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# File paths: adjust these if the data or the local store move
# ---------------------------------------------------------------------------
DATA_DIR = Path(__file__).resolve().parent.parent

DEFAULT_WORKBOOK_FILE = DATA_DIR / "Base_Datos_Laboratorio_2025.xlsx"
STORE_PATH = Path(os.environ.get("CONCRETE_LAB_STORE", DATA_DIR / ".concrete_lab.sqlite"))

# ---------------------------------------------------------------------------
# Lab identity
# ---------------------------------------------------------------------------
LAB_NAME = "ConcreteLab Analytics"

# ---------------------------------------------------------------------------
# Column registry
# ---------------------------------------------------------------------------
# Normalised header -> canonical field.
COLUMN_MAP: dict[str, str] = {
    "fecha_toma": "sampling_date",
    "guia_no": "guide_number",
    "cliente": "client",
    "elemento": "element",
    "fc_diseno_kgcm2": "design_strength",
    "tipo": "design_type",
    "fecha_ensayo": "test_date",
    "edad_actual": "current_age",
    "edad_a_ensayo": "test_age",
    "diametro_mm": "diameter",
    "altura_mm": "height",
    "area_cm2": "area",
    "volumen_cm3": "volume",
    "peso_kg": "weight",
    "densidad_g_cm3": "density",
    "carga_ton": "load",
    "fc_rotura_kgcm2": "rupture_strength",
    "fc_rotura_mpa": "rupture_strength_alt",
    "cemento_kg_m3": "cement_content",
    "fc_%": "strength_ratio",
    "camion_codigo": "truck_code",
}

# Variants seen in lab exports that differ beyond accents/spacing.
COLUMN_ALIASES: dict[str, str] = {
    "guia": "guide_number",
    "guia_n": "guide_number",
    "edad_ensayo": "test_age",
    "fc_diseno": "design_strength",
    "fc_rotura": "rupture_strength",
    "fc_pct": "strength_ratio",
    "camion": "truck_code",
}

DATE_FIELDS = ("sampling_date", "test_date")
INT_FIELDS = ("current_age", "test_age")
FLOAT_FIELDS = (
    "design_strength",
    "diameter",
    "height",
    "area",
    "volume",
    "weight",
    "density",
    "load",
    "rupture_strength",
    "rupture_strength_alt",
    "cement_content",
    "strength_ratio",
)
STRENGTH_FIELDS = ("design_strength", "rupture_strength", "rupture_strength_alt")

# Rows scanned when looking for the header row of a sheet
HEADER_SCAN_ROWS = 20

# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------
UNKNOWN_CLIENT = "Desconocido"
OTHER_ELEMENT = "Otros"
UNSPECIFIED_DESIGN = "Sin Especificar"
WILDCARD = "All"

# ---------------------------------------------------------------------------
# Ingestion rules
# ---------------------------------------------------------------------------
# Samples at or below this rupture strength are instrument/data errors
MIN_VALID_RUPTURE = 1.0
# Plain strength ratios above this are whole-number percentages (95 -> 0.95)
RATIO_PERCENT_THRESHOLD = 2.0
# Day-first parsing for non-ISO date strings (15/01/2025)
DATE_DAYFIRST = True

# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------
DEFAULT_TARGET_AGE = 28
TOP_N = 10
RECENT_SAMPLES_LIMIT = 200
CONTROL_SIGMA = 3.0
MIN_SPC_SAMPLES = 2

# RAG bands for compliance % (mature samples)
COMPLIANCE_GREEN = 95.0
COMPLIANCE_AMBER = 85.0
# Client table: below this compliance % the client is flagged for review
CLIENT_REVIEW_THRESHOLD = 90.0

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
SCHEMA_VERSION = 1
STORE_KEY = f"concrete_lab_data_v{SCHEMA_VERSION}"

# Seconds; None disables the timeout
INGEST_TIMEOUT_S: float | None = 120.0
STORE_TIMEOUT_S: float | None = 15.0

# ---------------------------------------------------------------------------
# Locale
# ---------------------------------------------------------------------------
DEFAULT_LOCALE = os.environ.get("CONCRETE_LAB_LOCALE", "es")

MONTH_ABBREVIATIONS: dict[str, list[str]] = {
    "es": ["ENE", "FEB", "MAR", "ABR", "MAY", "JUN", "JUL", "AGO", "SEP", "OCT", "NOV", "DIC"],
    "en": ["JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"],
}

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
UNIX_EPOCH = "1970-01-01"
# Days between the spreadsheet epoch and the Unix epoch
EXCEL_UNIX_OFFSET = 25569
