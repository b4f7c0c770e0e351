import logging
from contextlib import contextmanager
from datetime import date
from typing import List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from core.charts import monthly_chart, status_chart
from core.config import configure_logging, load_settings
from core.constants import STATUS_BUDGET
from core.data import ServiceOrder, load_dashboard_data, records_to_frame, refresh_dashboard_data
from core.dispatch import (
    DispatchError,
    DispatchState,
    EmailJSClient,
    JsonFileStore,
    budget_queue,
    dispatch_budget_request,
    format_entry_date,
    format_ps_number,
    load_workshop_emails,
    resolve_destination,
    save_workshop_emails,
)
from core.filters import describe_filters
from core.metrics import compute_kpis, group_by_month, group_by_status, prepare_context
from core.report import EmptyReportError, build_report_pdf, format_currency, report_filename

alt.data_transformers.disable_max_rows()
configure_logging()
logger = logging.getLogger(__name__)
settings = load_settings()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def order_table(records: List[ServiceOrder]) -> pd.DataFrame:
    df = records_to_frame(records)
    if df.empty:
        return df
    df.insert(0, "PS #", [format_ps_number(r.ps, r.entry_date) for r in records])
    df["entry_date"] = [format_entry_date(r.entry_date) for r in records]
    df["budget_value"] = [format_currency(r.budget_value) for r in records]
    return df[["PS #", "om", "description", "workshop", "status", "entry_date", "budget_value"]].rename(
        columns={
            "om": "OM",
            "description": "Descrição",
            "workshop": "Oficina",
            "status": "Status",
            "entry_date": "Entrada",
            "budget_value": "Valor",
        }
    )


# ---------- UI setup ----------
st.set_page_config(page_title="Controle de PS - BFLa", layout="wide")
inject_base_styles()

data_ctx = load_dashboard_data(settings)
records: List[ServiceOrder] = list(data_ctx.get("records", ()))
email_store = JsonFileStore(settings.workshop_emails_path, default={})
dispatch_state = DispatchState(JsonFileStore(settings.dispatch_state_path, default=[]))
workshop_emails = load_workshop_emails(email_store)
all_options = prepare_context({}, data_ctx)["options"]

with st.sidebar:
    st.markdown("### Navegação")
    awaiting_count = sum(1 for r in records if r.status == STATUS_BUDGET)
    page = st.radio("Navegação", ["Dashboard", f"A Orçar ({awaiting_count})", "Configurações"], index=0)
    if st.button("Atualizar"):
        data_ctx = refresh_dashboard_data(settings)
        records = list(data_ctx.get("records", ()))
        all_options = prepare_context({}, data_ctx)["options"]
    loaded_at = data_ctx.get("loaded_at")
    if loaded_at is not None:
        st.caption(f"Última atualização: {loaded_at.strftime('%d/%m/%Y %H:%M:%S')}")


def render_dashboard():
    st.title("Controle de PS - BFLa")
    if not records:
        st.warning("Nenhum dado carregado. Verifique a planilha de origem ou tente atualizar.")

    c1, c2, c3, c4, c5 = st.columns(5)
    start: Optional[date] = c1.date_input("Data inicial", value=None, format="DD/MM/YYYY")
    end: Optional[date] = c2.date_input("Data final", value=None, format="DD/MM/YYYY")
    om = c3.selectbox("OM", ["TODAS"] + all_options["oms"])
    workshop = c4.selectbox("Oficina", ["TODAS"] + all_options["workshops"])
    status = c5.selectbox("Status", ["TODOS"] + all_options["statuses"])

    ctx = prepare_context(
        {"start_date": start, "end_date": end, "om": om, "workshop": workshop, "status": status},
        data_ctx,
    )
    filters = ctx["filters"]
    filtered: List[ServiceOrder] = ctx["filtered"]
    st.markdown(
        "<div class='chip-row'>"
        + "".join(f"<span class='chip'>{p}</span>" for p in describe_filters(filters).split(" | "))
        + "</div>",
        unsafe_allow_html=True,
    )

    kpis = compute_kpis(filtered)
    row1 = st.columns(5)
    row1[0].metric("Total de PS", f"{kpis.total_count}")
    row1[1].metric("Orçamento total", format_currency(kpis.total_budget))
    row1[2].metric("Pendentes", f"{kpis.pending_count}")
    row1[3].metric("Concluídos", f"{kpis.completed_count}")
    row1[4].metric("Aditados", f"{kpis.amended_count}")
    row2 = st.columns(5)
    row2[0].metric("Total HH", f"{kpis.total_labor_hours:,.1f}")
    row2[1].metric("Orgânico", f"{kpis.in_house_count}")
    row2[2].metric("Terceirizado", f"{kpis.outsourced_count}")
    row2[3].metric("Envio à oficina (dias)", f"{kpis.avg_lead_time_days:.1f}")
    row2[4].metric("Agu. Ind. Rec. (meses)", f"{kpis.avg_pending_months:.1f}")

    left, right = st.columns([3, 2])
    with left:
        with card("Histórico de Entrada Mensal"):
            st.altair_chart(monthly_chart(group_by_month(filtered)), use_container_width=True)
    with right:
        with card("Status das Solicitações"):
            st.altair_chart(status_chart(group_by_status(filtered)), use_container_width=True)

    with card("Lista de Pedidos"):
        st.dataframe(order_table(filtered), hide_index=True, use_container_width=True)
        try:
            pdf = build_report_pdf(filtered, filters)
        except EmptyReportError:
            st.info("Nenhum dado para exportar.")
        except Exception:
            logger.exception("Report generation failed")
            st.error("Erro ao gerar o relatório.")
        else:
            st.download_button("Exportar PDF", data=pdf, file_name=report_filename(), mime="application/pdf")


def render_budget_queue():
    st.title("Gestão de Orçamentos (A Orçar)")
    workshop = st.selectbox("Oficina", ["TODAS"] + all_options["workshops"])
    queue = budget_queue(records, None if workshop == "TODAS" else workshop, dispatch_state)
    st.caption(f"{queue['filtered']} pedidos filtrados")
    client = EmailJSClient(
        settings.emailjs_service_id,
        settings.emailjs_template_id,
        settings.emailjs_public_key,
        timeout=settings.fetch_timeout,
    )

    left, right = st.columns(2)
    with left:
        with card("Pendentes de Disparo"):
            if not queue["pending"]:
                st.info("Nenhum pedido pendente.")
            for r in queue["pending"]:
                st.markdown(
                    f"**PS {format_ps_number(r.ps, r.entry_date)}** · {r.om} · {r.workshop}  \n"
                    f"{r.description}  \n"
                    f"Destino: `{resolve_destination(r.workshop, workshop_emails)}`"
                )
                confirm = st.checkbox("Confirmar envio", key=f"confirm-{r.key}")
                if st.button("Disparar E-mail", key=f"send-{r.key}", disabled=not confirm):
                    try:
                        dispatch_budget_request(r, client, dispatch_state, workshop_emails)
                    except DispatchError:
                        logger.exception("Dispatch failed for %s", r.key)
                        st.error("Erro ao enviar e-mail.")
                    else:
                        st.success("E-mail enviado com sucesso!")
                        st.rerun()
    with right:
        with card("Enviados com Sucesso"):
            if not queue["dispatched"]:
                st.info("Nenhum e-mail enviado.")
            for r in queue["dispatched"]:
                cols = st.columns([5, 1])
                cols[0].markdown(f"**PS {format_ps_number(r.ps, r.entry_date)}** · {r.om} · {r.workshop}")
                if cols[1].button("Desfazer", key=f"revert-{r.key}"):
                    dispatch_state.revert(r.key)
                    st.rerun()


def render_settings():
    st.title("Configurações do Sistema")
    st.caption("Configure aqui os e-mails de destino para os disparos automáticos de orçamento.")
    edited = {}
    for name in sorted(set(all_options["workshops"]) | set(workshop_emails)):
        edited[name] = st.text_input(
            name,
            value=workshop_emails.get(name, ""),
            placeholder=resolve_destination(name, {}),
        )
    if st.button("Salvar Configurações"):
        if save_workshop_emails(email_store, edited):
            st.success("Configurações salvas!")
        else:
            st.error("Erro ao salvar configurações.")


if page == "Dashboard":
    render_dashboard()
elif page.startswith("A Orçar"):
    render_budget_queue()
else:
    render_settings()
