"""
ConcreteLab Analytics — Interactive Dashboard

Run with:  streamlit run app.py
"""

import asyncio

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from concrete_lab.config import LAB_NAME, STORE_PATH, WILDCARD
from concrete_lab.dashboard import get_design_view, get_executive_view, get_quality_view
from concrete_lab.filters import get_filter_options, normalize_filter
from concrete_lab.loaders import IngestionError
from concrete_lab.session import LabSession, OperationInProgressError
from concrete_lab.store import BlobStore, SampleStore

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title=LAB_NAME,
    page_icon="🧪",
    layout="wide",
    initial_sidebar_state="expanded",
)

RAG_COLORS = {
    "green": "#16a34a",
    "amber": "#ca8a04",
    "red": "#dc2626",
    "grey": "#95a5a6",
}
PRIMARY = "#2563eb"
SLATE = "#64748b"


# ---------------------------------------------------------------------------
# Session (one per browser tab)
# ---------------------------------------------------------------------------
if "lab_session" not in st.session_state:
    lab_session = LabSession(SampleStore(BlobStore(STORE_PATH)))
    with st.spinner("Cargando base de datos..."):
        asyncio.run(lab_session.restore())
    st.session_state["lab_session"] = lab_session

lab_session: LabSession = st.session_state["lab_session"]


def handle_upload(uploaded) -> None:
    try:
        with st.spinner("Procesando y guardando datos..."):
            result = asyncio.run(lab_session.upload(uploaded.getvalue()))
    except IngestionError as e:
        st.error(str(e))
        return
    except OperationInProgressError:
        st.warning("Hay una operación en curso, espere a que termine.")
        return
    if result.warnings:
        st.info(f"{len(result.warnings)} valores fueron reemplazados por valores por defecto.")


# ---------------------------------------------------------------------------
# Upload screen
# ---------------------------------------------------------------------------
if lab_session.samples.empty:
    st.title(LAB_NAME)
    st.markdown("Plataforma de inteligencia de negocios para laboratorios de concreto.")
    uploaded = st.file_uploader(
        "Sube la base de datos del laboratorio (todas las hojas serán procesadas)",
        type=["xlsx"],
        disabled=lab_session.busy,
    )
    if uploaded is not None:
        handle_upload(uploaded)
        if not lab_session.samples.empty:
            st.rerun()
    st.stop()

data = lab_session.samples
options = get_filter_options(data)

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title(LAB_NAME)
page = st.sidebar.radio(
    "Navegar",
    ["Resumen Ejecutivo", "Análisis por Diseño", "Control de Calidad"],
)
st.sidebar.divider()

date_range = st.sidebar.date_input("Fecha de ensayo", value=())
client = st.sidebar.selectbox("Cliente", [WILDCARD] + options["clients"])
design = st.sidebar.selectbox("Diseño", [WILDCARD] + options["designs"])
element = st.sidebar.selectbox("Elemento", [WILDCARD] + options["elements"])

predicate = normalize_filter({
    "start": date_range[0] if len(date_range) > 0 else None,
    "end": date_range[1] if len(date_range) > 1 else None,
    "client": client,
    "design_type": design,
    "element": element,
})

st.sidebar.divider()
if st.sidebar.button("Borrar datos", disabled=lab_session.busy):
    asyncio.run(lab_session.reset())
    st.rerun()


def kpi_card(label: str, value: str, color: str = PRIMARY, subtext: str = "") -> None:
    st.markdown(
        f"""
        <div style="border-left: 4px solid {color}; border-radius: 8px;
                    padding: 16px; margin-bottom: 8px; background: {color}11;">
            <div style="font-size: 13px; color: #888; font-weight: 600;">{label}</div>
            <div style="font-size: 28px; font-weight: 700; color: #222;">{value}</div>
            <div style="font-size: 12px; color: #999;">{subtext}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


# ===========================================================================
# PAGE: Executive Summary
# ===========================================================================
if page == "Resumen Ejecutivo":
    st.title("Resumen Ejecutivo")
    view = get_executive_view(data, predicate)
    summary = view["summary"]
    st.caption(f"{view['sample_count']} muestras en la selección")

    cols = st.columns(4)
    with cols[0]:
        kpi_card("Total Muestras", f"{summary['total']:,}")
    with cols[1]:
        kpi_card(
            "% Cumplimiento (Maduras)",
            f"{summary['compliance_pct']:.1f}%",
            RAG_COLORS[summary["rag"]],
            f"Base: {summary['mature']} muestras · {summary['in_progress']} en progreso",
        )
    with cols[2]:
        kpi_card("Sobre-resistencia Avg", f"{summary['over_strength_pct']:.1f}%", "#7c3aed")
    with cols[3]:
        kpi_card("Prom. Rotura Global", f"{summary['avg_strength']:.0f}", "#4f46e5")

    col1, col2 = st.columns([2, 1])
    with col1:
        monthly = view["monthly"]
        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=monthly["label"], y=monthly["design_mean"].round(),
            name="Prom. Diseño", mode="lines",
            line=dict(color=SLATE, width=2, dash="dash"),
        ))
        fig.add_trace(go.Scatter(
            x=monthly["label"], y=monthly["rupture_mean"].round(),
            name="Prom. Rotura", mode="lines+markers",
            line=dict(color=PRIMARY, width=3),
        ))
        fig.update_layout(
            title="Evolución General: Diseño vs. Rotura",
            height=380, plot_bgcolor="rgba(0,0,0,0)",
        )
        st.plotly_chart(fig, use_container_width=True)

    with col2:
        ranking = view["design_compliance"]
        fig = go.Figure(go.Bar(
            x=ranking["compliance_pct"], y=ranking["design"], orientation="h",
            marker_color=[RAG_COLORS[r] for r in ranking["rag"]],
        ))
        fig.update_layout(
            title="% Cumplimiento (Top 10 Tipos)",
            height=380, xaxis=dict(range=[0, 100]),
            plot_bgcolor="rgba(0,0,0,0)",
        )
        st.plotly_chart(fig, use_container_width=True)

    st.subheader("Matriz: Cliente vs. Desempeño (Muestras Maduras)")
    st.dataframe(view["client_performance"], use_container_width=True, hide_index=True)


# ===========================================================================
# PAGE: Design Analysis
# ===========================================================================
elif page == "Análisis por Diseño":
    st.title("Análisis por Diseño")
    designs = options["designs"]
    selected = st.selectbox("Tipo de diseño", designs)
    view = get_design_view(data, predicate, selected)
    stats = view["stats"]

    cols = st.columns(3)
    with cols[0]:
        kpi_card("Edad objetivo", f"{stats['target_age']} días", SLATE,
                 f"f'c diseño {stats['target_strength']:.0f} Kg/cm²")
    with cols[1]:
        kpi_card("% Cumplimiento a edad objetivo", f"{stats['compliance_pct']:.1f}%",
                 subtext=f"{stats['count']} muestras")
    with cols[2]:
        kpi_card("Prom. Rotura a edad objetivo", f"{stats['avg_strength']:.0f} Kg/cm²")

    evolution = view["evolution"]
    fig = go.Figure(go.Bar(
        x=evolution["label"], y=evolution["rupture_mean"].round(),
        marker_color=[PRIMARY if t else SLATE for t in evolution["is_target"]],
        text=evolution["count"], textposition="outside",
    ))
    fig.add_hline(y=stats["target_strength"], line_dash="dash", line_color=RAG_COLORS["red"])
    fig.update_layout(title="Evolución de resistencia por edad", height=360,
                      plot_bgcolor="rgba(0,0,0,0)")
    st.plotly_chart(fig, use_container_width=True)

    elements = view["elements"]
    if not elements.empty:
        st.plotly_chart(
            go.Figure(go.Pie(labels=elements["element"], values=elements["count"], hole=0.4)),
            use_container_width=True,
        )

    st.subheader("Detalle Completo de Muestras")
    st.caption("Mostrando hasta 200 registros recientes")
    st.dataframe(
        view["recent"][["test_date", "guide_number", "element", "truck_code", "test_age",
                        "design_strength", "rupture_strength", "strength_pct", "status"]],
        use_container_width=True, hide_index=True,
    )


# ===========================================================================
# PAGE: Quality Control
# ===========================================================================
elif page == "Control de Calidad":
    st.title("Control de Calidad")
    view = get_quality_view(data, predicate)
    limits = view["limits"]

    if limits is None:
        st.warning("Datos insuficientes para realizar control estadístico. "
                   "Seleccione filtros más amplios.")
    else:
        st.caption(f"μ (Promedio): {limits.mean:.1f} · σ (Desv. Std): {limits.std_dev:.1f}")
        chart = view["chart"]
        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=chart["seq"], y=chart["rupture_strength"], name="Rotura",
            mode="lines+markers", line=dict(color=PRIMARY),
            marker=dict(color=[RAG_COLORS["red"] if o else PRIMARY for o in chart["out_of_control"]]),
        ))
        fig.add_trace(go.Scatter(
            x=chart["seq"], y=chart["design_strength"], name="Diseño",
            mode="lines", line=dict(color=SLATE, dash="dot"),
        ))
        fig.add_hline(y=limits.mean, line_color="#16a34a", annotation_text="μ")
        fig.add_hline(y=limits.upper, line_dash="dash", line_color="#dc2626", annotation_text="UCL")
        fig.add_hline(y=limits.lower, line_dash="dash", line_color="#dc2626", annotation_text="LCL")
        fig.update_layout(title="Gráfico de Control (Todas las muestras filtradas)",
                          xaxis_title="Tiempo (Secuencia)", height=420,
                          plot_bgcolor="rgba(0,0,0,0)")
        st.plotly_chart(fig, use_container_width=True)

    st.subheader("Registro de No Conformidades")
    failures = view["non_conformities"]
    if failures.empty:
        st.success("¡Excelente! No hay no conformidades en la selección actual.")
    else:
        display_df = failures[["test_date", "guide_number", "client", "test_age",
                               "design_strength", "rupture_strength", "deficit_pct"]].copy()
        display_df["deficit_pct"] = display_df["deficit_pct"].apply(
            lambda x: f"-{x:.1f}%" if pd.notna(x) else ""
        )
        st.dataframe(display_df, use_container_width=True, hide_index=True)
