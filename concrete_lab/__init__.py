"""
ConcreteLab Analytics — Concrete Laboratory Quality Dashboard

Analytics backend that turns cylinder-break test spreadsheets into a
validated sample collection and dashboard-ready compliance metrics.

To load a workbook:
    loaders.parse_workbook(xlsx_bytes) returns an IngestResult whose
    .samples DataFrame has the columns listed in models.SAMPLE_COLUMNS,
    plus a .warnings list of every field coerced to a default.

To connect to Streamlit/Dash:
    Call dashboard.get_executive_view / get_design_view / get_quality_view
    with the sample collection and a filters.FilterPredicate to get plain
    dicts suitable for cards, trend charts (Plotly) and tables.

To persist between sessions:
    session.LabSession wraps ingestion and store.SampleStore so uploads,
    restores and resets never run concurrently.
"""
