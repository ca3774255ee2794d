"""
app.py
Streamlit invoice control for tracking-service contracts (admin + restricted viewer).
Run: streamlit run app.py
"""

from __future__ import annotations

from datetime import date

import streamlit as st
from loguru import logger

import auth
import db
import invoices
import reports
import utils
from calculations import compute_invoice_values, plan_label, to_decimal
from config import configure_logging, settings
from models import (
    FUEL_TYPES,
    PLAN_CODES,
    RENEWAL_STATUSES,
    InvalidPlanError,
    InvoiceInput,
    VehicleData,
)

st.set_page_config(page_title="Control de Facturas", layout="wide")


def init_once():
    configure_logging(settings.log_level)
    # Initialize DB + default users if needed
    viewer = None
    if settings.viewer_password:
        viewer = (settings.viewer_username, auth.hash_password(settings.viewer_password))
    db.init_db(auth.hash_password("admin123"), viewer=viewer)


def require_login():
    if "role" not in st.session_state:
        st.session_state.role = None
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.role = None
    st.session_state.username = None
    st.success("Sesión cerrada.")


def login_screen():
    st.title("🔐 Control de Facturas")

    col1, col2 = st.columns([1, 1])
    with col1:
        login_value = st.text_input("Usuario o correo", value="admin")
        password = st.text_input("Contraseña", type="password")
        if st.button("Ingresar", type="primary"):
            role = auth.login(login_value, password)
            if role:
                st.session_state.role = role
                st.session_state.username = auth.to_login_username(login_value)
                st.rerun()
            else:
                st.error("Usuario o contraseña incorrectos.")

    with col2:
        st.info(
            "El primer arranque crea el administrador:\n\n"
            "- usuario: **admin**\n"
            "- contraseña: **admin123**\n\n"
            "Se pedirá cambiarla en el primer ingreso."
        )


def force_change_password_screen():
    st.title("⚠️ Cambio de contraseña (obligatorio)")

    st.warning("Debe cambiar la contraseña por defecto antes de continuar.")
    new1 = st.text_input("Nueva contraseña", type="password")
    new2 = st.text_input("Confirmar contraseña", type="password")

    if st.button("Actualizar contraseña", type="primary"):
        if len(new1) < 6:
            st.error("La contraseña debe tener al menos 6 caracteres.")
            return
        if new1 != new2:
            st.error("Las contraseñas no coinciden.")
            return
        auth.change_password(st.session_state.username, new1)
        st.success("Contraseña actualizada.")
        st.rerun()


def load_invoices():
    return utils.sort_by_invoice_number(invoices.list_invoices())


def csv_button(label: str, df, file_name: str):
    st.download_button(label, data=utils.to_csv_bytes(df), file_name=file_name, mime="text/csv",
                       disabled=df.empty)


# ---------- Invoices ----------

def _choice_with_memory(label: str, pref_name: str, current: str | None) -> str:
    options = db.get_preference_list(pref_name)
    new_label = "(nuevo…)"
    choices = options + [new_label]
    index = options.index(current) if current in options else len(options)
    picked = st.selectbox(label, choices, index=index, key=f"sel_{pref_name}")
    if picked == new_label:
        return st.text_input(f"{label} (nuevo)", value=current or "", key=f"new_{pref_name}")
    return picked


def invoice_form(existing=None):
    if existing:
        st.subheader(f"✏️ Editar factura (ID: {existing.id})")
    else:
        st.subheader("➕ Nueva factura")

    vehicle = existing.vehicle if existing and existing.vehicle else VehicleData()

    col1, col2, col3 = st.columns(3)
    with col1:
        dealer = _choice_with_memory("Comercializadora", "dealers", existing.dealer if existing else None)
        invoice_number = st.text_input("N° Factura", value=(existing.invoice_number if existing else ""))
        client = st.text_input("Cliente", value=(existing.client if existing else ""))
        invoice_date = st.date_input(
            "Fecha de factura", value=(existing.invoice_date if existing and existing.invoice_date else date.today())
        )

    with col2:
        gross_total = st.text_input("Valor total", value=(str(existing.gross_total) if existing else ""))
        plan = st.selectbox(
            "Años de servicio",
            options=list(PLAN_CODES),
            index=(PLAN_CODES.index(existing.plan) if existing and existing.plan in PLAN_CODES else 0),
            format_func=plan_label,
        )
        paid = st.checkbox("Pagada", value=(existing.paid if existing else False))
        will_not_renew = st.checkbox("No desea renovar", value=(existing.will_not_renew if existing else False))

        # Preview only; storage recomputes on save
        try:
            preview = compute_invoice_values(to_decimal(gross_total), plan)
            st.caption(
                f"Valor fijo {utils.format_currency(preview.fixed_fee)} · "
                f"Excedente {utils.format_currency(preview.excess)} · "
                f"Comisión {utils.format_currency(preview.commission)} · "
                f"Total IVA {utils.format_currency(preview.total_vat)}"
            )
        except ValueError:
            st.caption("Ingrese un valor total numérico para ver el cálculo.")

    with col3:
        with st.expander("Datos del vehículo", expanded=not vehicle.is_empty()):
            model = st.text_input("Modelo", value=vehicle.model or "")
            year = st.number_input("Año", min_value=0, max_value=2100, value=vehicle.year or 0, step=1)
            fuel_keys = [""] + list(FUEL_TYPES)
            fuel_type = st.selectbox(
                "Tipo", fuel_keys,
                index=(fuel_keys.index(vehicle.fuel_type) if vehicle.fuel_type in fuel_keys else 0),
                format_func=lambda k: FUEL_TYPES.get(k, "—"),
            )
            plate = st.text_input("Placa", value=vehicle.plate or "")
            color = _choice_with_memory("Color", "colors", vehicle.color)
            city = st.text_input("Ciudad", value=vehicle.city or "")
            address = st.text_input("Dirección", value=vehicle.address or "")
            phone = st.text_input("Teléfono", value=vehicle.phone or "")
            installed = st.checkbox("Instalado", value=vehicle.delivery_date is not None)
            delivery_date = st.date_input("Fecha de entrega/instalación", value=vehicle.delivery_date or date.today(),
                                          disabled=not installed)

    errors = utils.validate_invoice_inputs(dealer, invoice_number, gross_total, client, invoice_date.isoformat())
    if errors:
        for e in errors:
            st.error(e)

    if st.button("Guardar", type="primary", disabled=bool(errors)):
        new_vehicle = VehicleData(
            model=model or None,
            year=int(year) or None,
            fuel_type=fuel_type or None,
            plate=plate.strip().upper() or None,
            color=color or None,
            city=city or None,
            address=address or None,
            phone=phone or None,
            delivery_date=delivery_date if installed else None,
        )
        data = InvoiceInput(
            dealer=dealer,
            invoice_number=invoice_number,
            gross_total=to_decimal(gross_total),
            plan=plan,
            invoice_date=invoice_date,
            client=client,
            vehicle=new_vehicle,
            paid=paid,
            will_not_renew=will_not_renew,
        )
        try:
            if existing:
                invoices.update_invoice(existing.id, **{k: getattr(data, k) for k in data.__dataclass_fields__})
                st.session_state.edit_invoice_id = None
                st.success("Factura actualizada.")
            else:
                invoices.create_invoice(data)
                st.success("Factura creada.")
        except InvalidPlanError as exc:
            st.error(str(exc))
            return
        db.add_to_preference_list("dealers", dealer)
        if color:
            db.add_to_preference_list("colors", color)
        st.rerun()


def invoices_page():
    st.header("🧾 Facturas")

    with st.sidebar:
        st.subheader("Búsqueda")
        search = st.text_input("Cliente / placa / ciudad")

    rows = [
        inv for inv in load_invoices()
        if utils.matches_search(inv.client, search)
        or utils.matches_search(inv.vehicle.plate if inv.vehicle else None, search)
        or utils.matches_search(inv.vehicle.city if inv.vehicle else None, search)
    ]
    df = reports.invoices_frame(rows)
    st.dataframe(df, use_container_width=True, hide_index=True)
    csv_button("Descargar facturas.csv", df, "facturas.csv")

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        selected_id = st.selectbox("ID de factura", options=["(ninguna)"] + [str(inv.id) for inv in rows])

    with colB:
        if selected_id != "(ninguna)":
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Editar"):
                    st.session_state.edit_invoice_id = int(selected_id)
                    st.rerun()
            with c2:
                delete_confirm = st.checkbox("Confirmar eliminación", value=False, key="del_confirm")
                if st.button("Eliminar", type="secondary", disabled=not delete_confirm):
                    invoices.delete_invoice(int(selected_id))
                    st.success("Factura eliminada.")
                    st.rerun()

    st.divider()

    if st.session_state.get("edit_invoice_id"):
        existing = invoices.get_invoice(st.session_state.edit_invoice_id)
        if existing:
            invoice_form(existing=existing)
        if st.button("Cancelar edición"):
            st.session_state.edit_invoice_id = None
            st.rerun()
    else:
        invoice_form(existing=None)


# ---------- Reports ----------

def vat_page():
    st.header("📑 Reporte de IVA")

    st.subheader("Período personalizado")
    c1, c2 = st.columns(2)
    with c1:
        start = st.date_input("Desde", value=date.today().replace(day=1), key="vat_start")
    with c2:
        end = st.date_input("Hasta", value=date.today(), key="vat_end")
    if st.button("Generar reporte"):
        count, total = reports.period_vat_total(invoices.list_invoices_by_date_range(start, end), start, end)
        st.info(f"Total IVA del período: **{utils.format_currency(total)}** · Facturas: **{count}**")

    st.divider()

    st.subheader("Cortes semestrales")
    cuts = reports.bucket_invoices_by_semester(invoices.list_invoices())
    if not cuts:
        st.caption("No hay facturas registradas.")
        return
    for cut in cuts:
        with st.expander(
            f"{cut.label} · {utils.format_date(cut.start)} - {utils.format_date(cut.end)} · "
            f"{len(cut.invoices)} factura(s) · {utils.format_currency(cut.total_vat)}"
        ):
            df = reports.semester_detail_frame(cut)
            st.dataframe(df, use_container_width=True, hide_index=True)
            csv_button("Descargar CSV", df, f"iva-{cut.start.isoformat()}.csv")


def installation_page():
    st.header("🚗 Vehículos (instalación y pago)")

    all_invoices = load_invoices()
    installed_opts = {"Todas": None, "Pendientes de instalación": False, "Instalados": True}
    paid_opts = {"Todas": None, "Pagadas": True, "Pendientes de pago": False}

    c1, c2, c3, c4, c5 = st.columns(5)
    with c1:
        installed = installed_opts[st.selectbox("Instalación", list(installed_opts))]
    with c2:
        paid = paid_opts[st.selectbox("Pago", list(paid_opts))]
    with c3:
        plate = st.text_input("Placa")
    with c4:
        client = st.text_input("Cliente")
    with c5:
        city = st.selectbox("Ciudad", [""] + reports.unique_cities(all_invoices),
                            format_func=lambda c: c or "Todas")

    rows = reports.installation_report(all_invoices, installed=installed, paid=paid,
                                       plate=plate, client=client, city=city)
    st.caption(f"Mostrando {len(rows)} de {len(all_invoices)} factura(s)")
    df = reports.installation_frame(rows)
    st.dataframe(df, use_container_width=True, hide_index=True)
    csv_button("Descargar CSV", df, f"informe-vehiculos-{date.today().isoformat()}.csv")


def renewals_page():
    st.header("🔁 Próximas renovaciones")
    st.caption(
        "Fecha de vencimiento = fecha de entrega + años de servicio. "
        "Alerta 15 días antes del vencimiento."
    )

    all_invoices = load_invoices()
    missing = reports.count_without_installation(all_invoices)
    if missing:
        st.warning(f"{missing} factura(s) sin fecha de entrega no aparecen en este reporte.")

    renew_opts = {"Todas": None, "Renovarán": True, "No renovarán": False}
    c1, c2 = st.columns(2)
    with c1:
        status = st.selectbox("Estado", ["Todas", *RENEWAL_STATUSES])
    with c2:
        will_renew = renew_opts[st.selectbox("Renovación", list(renew_opts))]

    rows = reports.renewal_report(all_invoices, status=None if status == "Todas" else status,
                                  will_renew=will_renew)
    df = reports.renewal_frame(rows)
    st.dataframe(df, use_container_width=True, hide_index=True)
    csv_button("Descargar CSV", df, f"reporte-renovaciones-{date.today().isoformat()}.csv")


def profit_page():
    st.header("💰 Ganancia de la empresa")
    st.caption("Ganancia = Valor de la factura − Comisión Val − Total IVA")

    today = date.today()
    period = st.radio("Período", ["Este mes", "Mes anterior", "Rango de fechas"], horizontal=True)
    if period == "Este mes":
        start, end = utils.month_bounds(today)
    elif period == "Mes anterior":
        start, end = utils.previous_month_bounds(today)
    else:
        c1, c2 = st.columns(2)
        default_start, default_end = utils.month_bounds(today)
        with c1:
            start = st.date_input("Desde", value=default_start, key="profit_start")
        with c2:
            end = st.date_input("Hasta", value=default_end, key="profit_end")

    rows, totals = reports.profit_report(invoices.list_invoices(), start, end)
    st.caption(f"Período: {utils.format_date(start)} - {utils.format_date(end)} · {len(rows)} factura(s)")

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Valor total", utils.format_currency(totals.gross_total))
    c2.metric("Comisión Val", utils.format_currency(totals.commission))
    c3.metric("Total IVA", utils.format_currency(totals.total_vat))
    c4.metric("Ganancia", utils.format_currency(totals.profit))

    df = reports.profit_frame(rows, totals)
    st.dataframe(df, use_container_width=True, hide_index=True)
    csv_button("Descargar CSV", df, f"reporte-ganancia-{today.isoformat()}.csv")


def settings_page():
    st.header("⚙️ Ajustes")

    st.subheader("Cambiar contraseña")
    p1 = st.text_input("Nueva contraseña", type="password")
    p2 = st.text_input("Confirmar contraseña", type="password")
    if st.button("Actualizar contraseña", type="primary"):
        if len(p1) < 6:
            st.error("La contraseña debe tener al menos 6 caracteres.")
        elif p1 != p2:
            st.error("Las contraseñas no coinciden.")
        else:
            auth.change_password(st.session_state.username, p1)
            st.success("Contraseña actualizada.")

    st.divider()

    st.subheader("Datos de ejemplo")
    st.caption("Inserta 4 facturas de prueba (agrega filas nuevas cada vez).")
    if st.button("Insertar datos de ejemplo"):
        invoices.insert_sample_data()
        st.success("Datos de ejemplo insertados.")
        st.rerun()


def main_app():
    st.sidebar.title("🛰️ Control de Facturas")
    st.sidebar.caption(f"Usuario: {st.session_state.username}")

    if st.sidebar.button("Cerrar sesión"):
        logout()
        st.rerun()

    # Restricted viewer only sees the installation/payment summary
    if auth.is_restricted(st.session_state.role):
        installation_page()
        return

    pages = {
        "Facturas": invoices_page,
        "Reporte IVA": vat_page,
        "Resumen": installation_page,
        "Renovaciones": renewals_page,
        "Ganancia": profit_page,
        "Ajustes": settings_page,
    }
    if "page" not in st.session_state:
        st.session_state.page = "Facturas"
    st.session_state.page = st.sidebar.radio("Navegar", list(pages), index=list(pages).index(st.session_state.page))
    pages[st.session_state.page]()


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.role:
        login_screen()
        return

    # Force password change on first admin login after DB creation
    if not auth.is_restricted(st.session_state.role) and db.is_force_password_change():
        force_change_password_screen()
        return

    try:
        main_app()
    except InvalidPlanError as exc:
        logger.error("Invoice computation failed: {}", exc)
        st.error(f"Error en el cálculo de la factura: {exc}")


if __name__ == "__main__":
    run()
