"""
app.py
Streamlit WiFi billing system: admin dashboard, field-collector view and
customer self-service portal.
Run: streamlit run app.py
"""

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime

import pandas as pd
import streamlit as st

import actions
import auth
import billing
import config
import db
import mikrotik
import registry
import utils
from exceptions import BillingError
from models import (
    BillStatus,
    CollectorStatus,
    CustomerStatus,
    Dataset,
    GatewayProvider,
    PaymentGatewayConfig,
    PaymentType,
    default_document,
)

st.set_page_config(page_title="WiFiNet Billing", layout="wide")


@st.cache_resource
def init_once() -> db.DocumentStore:
    # Store + hashed seed document (written only if the store is empty)
    config.configure_logging()
    return db.get_store(seed=default_document(auth.hash_password))


@st.cache_resource
def router_client() -> mikrotik.RouterClient:
    return mikrotik.SimulatedRouterClient()


def document_digest(doc: dict) -> str:
    return hashlib.sha1(json.dumps(doc, sort_keys=True).encode("utf-8")).hexdigest()


# ---------- Session markers ----------

def require_login():
    for key, default in (("admin_logged_in", False), ("collector_id", None), ("customer_id", None)):
        if key not in st.session_state:
            st.session_state[key] = default


def current_session() -> auth.Session:
    return auth.Session(
        admin_logged_in=st.session_state.admin_logged_in,
        collector_id=st.session_state.collector_id,
        customer_id=st.session_state.customer_id,
    )


def set_session(session: auth.Session):
    st.session_state.admin_logged_in = session.admin_logged_in
    st.session_state.collector_id = session.collector_id
    st.session_state.customer_id = session.customer_id


def logout():
    set_session(auth.ANONYMOUS)
    st.session_state.pop("page", None)
    st.session_state.pop("auto_billing_checked", None)


# ---------- Actions & feedback ----------

def flash(kind: str, message: str):
    st.session_state.flash = (kind, message)


def show_flash():
    kind, message = st.session_state.pop("flash", (None, None))
    if kind == "success":
        st.success(message)
    elif kind == "error":
        st.error(message)
    elif kind == "toast":
        st.toast(message)


def act(store, reducer, *args, success: str | None = None, **kwargs):
    """Run one reducer against the store; BillingErrors become an error message."""
    try:
        result = actions.run(store, reducer, *args, **kwargs)
    except BillingError as e:
        # Shown on the next run, callers usually st.rerun() right after
        flash("error", str(e))
        return None
    if success:
        flash("success", success)
    return result


@st.fragment(run_every=config.SYNC_INTERVAL_SECONDS)
def sync_watcher(store):
    # Re-fetch the whole document and rerun the page if someone else changed it
    if document_digest(store.load()) != st.session_state.get("doc_digest"):
        st.rerun()
    st.caption(f"Synced {datetime.now().strftime('%H:%M:%S')}")


# ---------- Login ----------

def login_screen(store, data):
    st.title(f"📶 {data.admin_profile.business_name}")
    st.caption("Admin, field collector and customer login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username / customer ID / phone")
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            session = auth.login(data, username, password)
            if session is None:
                st.error("Wrong username or password.")
            else:
                set_session(session)
                st.rerun()

    with col2:
        st.info(
            "First run creates a default admin:\n\n"
            "- username: **admin**\n"
            "- password: **admin123**\n\n"
            "You will be forced to change it on first login.\n\n"
            "Customers log in with their ID or phone number; until a password is set, "
            "the phone number is the password."
        )


def force_change_password_screen(store):
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        result = act(store, auth.change_admin_password, new1, new2)
        if result is None:
            st.rerun()
        _, errors = result
        for e in errors:
            st.error(e)
        if not errors:
            flash("success", "Password updated. You can continue.")
            st.rerun()


# ---------- Shared widgets ----------

def period_picker(key: str):
    today = date.today()
    c1, c2 = st.columns(2)
    with c1:
        month = st.selectbox(
            "Month",
            options=list(utils.MONTH_LABELS.keys()),
            index=today.month - 1,
            format_func=utils.month_label,
            key=f"{key}_month",
        )
    with c2:
        years = list(range(today.year - 3, today.year + 2))
        year = st.selectbox("Year", options=years, index=years.index(today.year), key=f"{key}_year")
    return month, year


def bills_frame(data, bills) -> pd.DataFrame:
    names = {c.id: c.name for c in data.customers}
    collectors = {c.id: c.name for c in data.collectors}
    today = utils.today_iso()
    rows = [
        {
            "id": b.id,
            "customer": names.get(b.customer_id, "N/A"),
            "period": f"{utils.month_label(b.month)} {b.year}",
            "amount": utils.format_idr(b.amount),
            "penalty": utils.format_idr(b.penalty_amount or 0),
            "total": utils.format_idr(b.total_payable),
            "status": "Overdue" if billing.is_overdue(b, today) else b.status.value,
            "due_date": b.due_date,
            "paid_at": b.paid_at or "",
            "method": b.payment_method or "",
            "collector": collectors.get(b.collector_id, b.collector_id or ""),
        }
        for b in bills
    ]
    return pd.DataFrame(rows, columns=[
        "id", "customer", "period", "amount", "penalty", "total",
        "status", "due_date", "paid_at", "method", "collector",
    ])


# ---------- Admin / collector pages ----------

def dashboard_page(store, data, collector_id=None):
    st.header("📊 Dashboard")
    today = utils.today_iso()
    summary = billing.dashboard_summary(data, today=today, collector_id=collector_id)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Active customers", summary.active_customers)
    c2.metric("Revenue (paid)", utils.format_idr(summary.total_revenue))
    c3.metric("Pending confirmations", summary.pending_count)
    c4.metric("Potential monthly", utils.format_idr(summary.potential_monthly))

    if summary.overdue_count:
        st.error(
            f"Attention: {summary.overdue_count} overdue bill(s) totalling "
            f"{utils.format_idr(summary.overdue_amount)}."
        )

    if collector_id is not None:
        stats = billing.collector_stats(data, collector_id)
        st.caption(
            f"Assigned {stats.count} bill(s) ({utils.format_idr(stats.total_assigned)}), "
            f"collected {stats.paid_count} ({utils.format_idr(stats.total_collected)})."
        )

    st.divider()
    st.subheader(f"Paid vs unpaid per month ({date.today().year})")
    bills = data.bills if collector_id is None else billing.bills_for_collector(data, collector_id)
    st.bar_chart(utils.revenue_by_month(bills, year=date.today().year))


def customer_form(store, data, existing=None):
    if existing:
        st.subheader(f"✏️ Edit Customer (ID: {existing.id})")
    else:
        st.subheader("➕ Add Customer")

    package_ids = [p.id for p in data.packages]
    package_names = {p.id: f"{p.name} ({p.speed}, {utils.format_idr(p.price)})" for p in data.packages}
    statuses = [s.value for s in CustomerStatus]

    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Name", value=(existing.name if existing else ""))
        phone = st.text_input("Phone", value=(existing.phone if existing else ""))
        address = st.text_input("Address", value=(existing.address if existing else ""))
    with col2:
        index = package_ids.index(existing.package_id) if existing and existing.package_id in package_ids else 0
        package_id = st.selectbox(
            "Package", options=package_ids, index=index, format_func=lambda pid: package_names.get(pid, pid)
        ) if package_ids else None
        status = st.selectbox(
            "Status", options=statuses, index=(statuses.index(existing.status.value) if existing else 0)
        )

    errors = utils.validate_customer_inputs(name, phone, address, package_id)
    if errors:
        for e in errors:
            st.error(e)

    if st.button("Save", type="primary", disabled=bool(errors)):
        if existing:
            act(store, registry.update_customer, existing.id, name=name.strip(), phone=phone.strip(),
                address=address.strip(), package_id=package_id, status=status, success="Customer updated.")
        else:
            act(store, registry.add_customer, name, phone, address, package_id, status, success="Customer added.")
        st.session_state.edit_customer_id = None
        st.rerun()


def customers_page(store, data):
    st.header("👥 Customers")

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/ID/phone)")
        status_filter = st.selectbox("Status", ["All"] + [s.value for s in CustomerStatus])

    packages = {p.id: p.name for p in data.packages}
    rows = registry.search_customers(data, search, status_filter)
    df = pd.DataFrame(
        [
            {"id": c.id, "name": c.name, "phone": c.phone, "address": c.address,
             "package": packages.get(c.package_id, "-"), "status": c.status.value, "created_at": c.created_at}
            for c in rows
        ],
        columns=["id", "name", "phone", "address", "package", "status", "created_at"],
    )
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.download_button(
        "Download customers.csv",
        data=utils.customers_to_csv_bytes(data),
        file_name="customers.csv",
        mime="text/csv",
    )

    st.divider()

    st.subheader("Bulk status update")
    c1, c2, c3 = st.columns([3, 1, 1])
    with c1:
        bulk_ids = st.multiselect("Customers", options=[c.id for c in rows],
                                  format_func=lambda cid: f"{cid} - {data.get('customers', cid).name}")
    with c2:
        bulk_status = st.selectbox("New status", [s.value for s in CustomerStatus], key="bulk_status")
    with c3:
        st.write("")
        if st.button("Apply", disabled=not bulk_ids):
            act(store, registry.bulk_set_customer_status, bulk_ids, bulk_status,
                success=f"{len(bulk_ids)} customer(s) set to {bulk_status}.")
            st.rerun()

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select customer")
        selected_id = st.selectbox("Customer ID", options=["(none)"] + [c.id for c in rows])

    with colB:
        if selected_id != "(none)":
            st.subheader("Customer actions")
            c1, c2, c3 = st.columns(3)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_customer_id = selected_id
                    st.rerun()
            with c2:
                show_history = st.toggle("Bill history", value=False)
            with c3:
                delete_confirm = st.checkbox("Confirm delete", value=False, key="del_customer_confirm")
                if st.button("Delete", type="secondary", disabled=not delete_confirm):
                    act(store, registry.delete_customer, selected_id, success="Customer deleted (bills kept).")
                    st.rerun()
            if show_history:
                st.dataframe(bills_frame(data, billing.customer_history(data, selected_id)),
                             use_container_width=True, hide_index=True)

    st.divider()

    edit_id = st.session_state.get("edit_customer_id")
    existing = data.find("customers", edit_id) if edit_id else None
    if existing:
        customer_form(store, data, existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_customer_id = None
            st.rerun()
    elif not data.packages:
        st.info("Add a package before adding customers.")
    else:
        customer_form(store, data)


def packages_page(store, data):
    st.header("📦 Packages")

    df = pd.DataFrame(
        [{"id": p.id, "name": p.name, "speed": p.speed, "price": utils.format_idr(p.price),
          "description": p.description} for p in data.packages],
        columns=["id", "name", "speed", "price", "description"],
    )
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.caption("Changing a price does not change bills that were already generated.")

    st.divider()

    options = ["(new)"] + [p.id for p in data.packages]
    selected = st.selectbox("Package", options, format_func=lambda pid: pid if pid == "(new)" else data.get("packages", pid).name)
    existing = data.find("packages", selected) if selected != "(new)" else None

    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Name", value=(existing.name if existing else ""), key=f"pkg_name_{selected}")
        speed = st.text_input("Speed", value=(existing.speed if existing else ""), key=f"pkg_speed_{selected}")
    with col2:
        price = st.text_input("Price (Rp)", value=(str(existing.price) if existing else "150000"), key=f"pkg_price_{selected}")
        description = st.text_input("Description", value=(existing.description if existing else ""), key=f"pkg_desc_{selected}")

    errors = utils.validate_package_inputs(name, speed, price)
    for e in errors:
        st.error(e)

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Save", type="primary", disabled=bool(errors)):
            if existing:
                act(store, registry.update_package, existing.id, name=name.strip(), speed=speed.strip(),
                    price=int(price), description=description.strip(), success="Package updated.")
            else:
                act(store, registry.add_package, name, speed, int(price), description, success="Package added.")
            st.rerun()
    with c2:
        if existing:
            confirm = st.checkbox("Confirm delete", key="del_pkg_confirm")
            if st.button("Delete", disabled=not confirm):
                act(store, registry.delete_package, existing.id, success="Package deleted.")
                st.rerun()


def bill_detail(store, data, bill, is_collector: bool):
    customer = data.find("customers", bill.customer_id)
    today = utils.today_iso()

    st.subheader(f"🧾 Bill #{bill.id.upper()}")
    c1, c2, c3 = st.columns(3)
    c1.write(f"**Customer:** {customer.name if customer else 'N/A'}")
    c1.write(f"**Period:** {utils.month_label(bill.month)} {bill.year}")
    c2.write(f"**Total:** {utils.format_idr(bill.total_payable)}")
    c2.write(f"**Due:** {bill.due_date}")
    c3.write(f"**Status:** {bill.status.value}{' (overdue)' if billing.is_overdue(bill, today) else ''}")
    if bill.payment_method:
        c3.write(f"**Method:** {bill.payment_method}")

    if customer:
        st.link_button(
            "Send WhatsApp reminder",
            utils.whatsapp_reminder_url(customer.name, customer.phone, bill.month, bill.year,
                                        bill.amount, bill.due_date, billing.is_overdue(bill, today)),
        )

    if bill.status != BillStatus.PAID:
        penalty = st.number_input(
            "Penalty (Rp)", min_value=0, step=1000,
            value=billing.suggested_penalty(bill, today), key=f"penalty_{bill.id}",
        )
        label = "Confirm payment" if bill.status == BillStatus.PENDING else "Mark as paid"
        if st.button(label, type="primary", key=f"pay_{bill.id}"):
            act(store, billing.mark_paid, bill.id, penalty=int(penalty), success="Bill marked as paid.")
            st.rerun()

    if bill.status == BillStatus.PENDING and not is_collector:
        if st.button("Reject payment", key=f"reject_{bill.id}"):
            act(store, billing.reject_payment, bill.id, success="Payment rejected; bill is Unpaid again.")
            st.rerun()

    if not is_collector:
        confirm = st.checkbox("Confirm delete", key=f"del_bill_confirm_{bill.id}")
        if st.button("Delete bill", disabled=not confirm, key=f"del_bill_{bill.id}"):
            act(store, billing.delete_bill, bill.id, success="Bill deleted.")
            st.rerun()

    if customer:
        st.caption("Customer history")
        st.dataframe(bills_frame(data, billing.customer_history(data, customer.id)),
                     use_container_width=True, hide_index=True)


def billing_page(store, data, collector_id=None):
    is_collector = collector_id is not None
    st.header("💳 Bills")

    month, year = period_picker("billing")
    c1, c2 = st.columns([2, 1])
    with c1:
        kind = st.radio("Show", billing.BILL_FILTERS, horizontal=True,
                        format_func=lambda k: k.capitalize())
    with c2:
        search = st.text_input("Search (name/invoice)")

    if not is_collector:
        missing = billing.customers_missing_bill(data, month, year)
        active_count = sum(1 for c in data.customers if c.status == CustomerStatus.ACTIVE)
        st.caption(f"{active_count - len(missing)} of {active_count} active customers billed for this period.")
        if st.button(f"Generate bills for {utils.month_label(month)} {year}", type="primary", disabled=not missing):
            result = act(store, billing.generate_bills, month, year)
            if result is not None:
                flash("success", f"{len(result[1])} new bill(s) created.")
            st.rerun()

    bills = billing.filter_bills(data, month=month, year=year, search=search, kind=kind, collector_id=collector_id)
    st.metric("Total shown", utils.format_idr(sum(b.total_payable for b in bills)))
    st.dataframe(bills_frame(data, bills), use_container_width=True, hide_index=True)

    st.download_button(
        "Download bills.csv",
        data=utils.bills_to_csv_bytes(data, bills),
        file_name=f"bills_{year}_{int(month):02d}.csv",
        mime="text/csv",
    )

    st.divider()

    names = {c.id: c.name for c in data.customers}
    def label(bid):
        return f"{bid} - {names.get(data.get('bills', bid).customer_id, 'N/A')}"

    st.subheader("Bulk actions")
    selected = st.multiselect("Bills", options=[b.id for b in bills], format_func=label)
    c1, c2, c3 = st.columns(3)
    with c1:
        if st.button("Mark selected paid", disabled=not selected):
            ids = billing.payable_ids(data, selected)
            if not ids:
                st.warning("All selected bills are already paid.")
            else:
                act(store, billing.mark_multiple_paid, ids, success=f"{len(ids)} bill(s) marked as paid.")
                st.rerun()
    if not is_collector:
        with c2:
            confirm = st.checkbox("Confirm bulk delete", key="bulk_del_confirm")
            if st.button("Delete selected", disabled=not (selected and confirm)):
                act(store, billing.delete_bills, selected, success=f"{len(selected)} bill(s) deleted.")
                st.rerun()
        with c3:
            collectors = {c.id: c.name for c in data.collectors if c.status == CollectorStatus.ACTIVE}
            target = st.selectbox("Assign to collector", ["(none)"] + list(collectors),
                                  format_func=lambda cid: collectors.get(cid, cid))
            if st.button("Assign", disabled=not selected):
                act(store, billing.assign_collector, selected, None if target == "(none)" else target,
                    success=f"{len(selected)} bill(s) assigned.")
                st.rerun()

    st.divider()

    detail_id = st.selectbox("Bill detail", ["(none)"] + [b.id for b in bills],
                             format_func=lambda bid: bid if bid == "(none)" else label(bid))
    if detail_id != "(none)":
        bill_detail(store, data, data.get("bills", detail_id), is_collector)


def collectors_page(store, data):
    st.header("🛵 Collectors")

    rows = []
    for c in data.collectors:
        stats = billing.collector_stats(data, c.id)
        rows.append({
            "id": c.id, "name": c.name, "phone": c.phone, "status": c.status.value, "joined_at": c.joined_at,
            "bills": stats.count, "paid": stats.paid_count,
            "assigned": utils.format_idr(stats.total_assigned), "collected": utils.format_idr(stats.total_collected),
        })
    st.dataframe(pd.DataFrame(rows, columns=["id", "name", "phone", "status", "joined_at", "bills", "paid",
                                             "assigned", "collected"]),
                 use_container_width=True, hide_index=True)

    st.divider()

    selected = st.selectbox("Collector", ["(new)"] + [c.id for c in data.collectors])
    existing = data.find("collectors", selected) if selected != "(new)" else None
    statuses = [s.value for s in CollectorStatus]

    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Name", value=(existing.name if existing else ""), key=f"col_name_{selected}")
        phone = st.text_input("Phone", value=(existing.phone if existing else ""), key=f"col_phone_{selected}")
    with col2:
        password = st.text_input("Password (blank keeps current / default 123456)", type="password",
                                 key=f"col_pw_{selected}")
        status = st.selectbox("Status", statuses, index=(statuses.index(existing.status.value) if existing else 0),
                              key=f"col_status_{selected}")

    errors = utils.validate_collector_inputs(name, phone)
    for e in errors:
        st.error(e)

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Save", type="primary", disabled=bool(errors)):
            hashed = auth.hash_password(password) if password else None
            if existing:
                changes = {"name": name.strip(), "phone": phone.strip(), "status": status}
                if hashed:
                    changes["password"] = hashed
                act(store, registry.update_collector, existing.id, success="Collector updated.", **changes)
            else:
                act(store, registry.add_collector, name, phone, hashed, status, success="Collector added.")
            st.rerun()
    with c2:
        if existing:
            confirm = st.checkbox("Confirm delete", key="del_col_confirm")
            if st.button("Delete", disabled=not confirm):
                act(store, registry.delete_collector, existing.id, success="Collector deleted.")
                st.rerun()


def mikrotik_page(store, data):
    st.header("🛜 Mikrotik")
    client = router_client()
    routers_tab, users_tab = st.tabs(["Routers", "Users"])

    with routers_tab:
        st.dataframe(
            pd.DataFrame([{"id": r.id, "name": r.name, "host": r.host, "port": r.port, "username": r.username,
                           "status": r.status.value} for r in data.routers],
                         columns=["id", "name", "host", "port", "username", "status"]),
            use_container_width=True, hide_index=True,
        )

        selected = st.selectbox("Router", ["(new)"] + [r.id for r in data.routers])
        existing = data.find("routers", selected) if selected != "(new)" else None
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Name", value=(existing.name if existing else ""), key=f"rtr_name_{selected}")
            host = st.text_input("Host", value=(existing.host if existing else ""), key=f"rtr_host_{selected}")
            port = st.text_input("API port", value=str(existing.port if existing else 8728), key=f"rtr_port_{selected}")
        with col2:
            username = st.text_input("Username", value=(existing.username if existing else ""), key=f"rtr_user_{selected}")
            password = st.text_input("Password", type="password", key=f"rtr_pw_{selected}")

        errors = utils.validate_router_inputs(name, host, port, username)
        for e in errors:
            st.error(e)

        c1, c2, c3 = st.columns(3)
        with c1:
            if st.button("Save", type="primary", disabled=bool(errors), key="rtr_save"):
                if existing:
                    changes = {"name": name.strip(), "host": host.strip(), "port": int(port), "username": username.strip()}
                    if password:
                        changes["password"] = password
                    act(store, registry.update_router, existing.id, success="Router updated.", **changes)
                else:
                    act(store, registry.add_router, name, host, username, int(port), password, success="Router added.")
                st.rerun()
        if existing:
            with c2:
                if st.button("Test connection"):
                    result = act(store, mikrotik.test_router, existing.id, client)
                    if result is not None:
                        flash("toast", f"{existing.name}: {result[1].message}")
                    st.rerun()
            with c3:
                confirm = st.checkbox("Confirm delete", key="del_rtr_confirm")
                if st.button("Delete", disabled=not confirm, key="rtr_delete"):
                    act(store, registry.delete_router, existing.id, success="Router deleted.")
                    st.rerun()

    with users_tab:
        if not data.routers:
            st.info("Add a router first.")
            return
        router_id = st.selectbox("Sync to router", [r.id for r in data.routers],
                                 format_func=lambda rid: data.get("routers", rid).name)
        active = [c for c in data.customers if c.status == CustomerStatus.ACTIVE]
        customer_id = st.selectbox("Customer", [c.id for c in active] or ["(none)"],
                                   format_func=lambda cid: cid if cid == "(none)" else f"{cid} - {data.get('customers', cid).name}")
        if st.button("Sync user", disabled=customer_id == "(none)"):
            result = act(store, mikrotik.sync_customer, customer_id, router_id, client)
            if result is not None:
                flash("toast", f"{customer_id}: {result[1].message}")
            st.rerun()

        st.subheader("Synced users")
        names = {c.id: c.name for c in data.customers}
        routers = {r.id: r.name for r in data.routers}
        users = [u for u in data.mikrotik_users if u.router_id == router_id]
        st.dataframe(
            pd.DataFrame([{"id": u.id, "customer": names.get(u.customer_id, u.customer_id), "router": routers.get(u.router_id, ""),
                           "username": u.username, "profile": u.profile, "enabled": u.enabled,
                           "last_synced": u.last_synced} for u in users],
                         columns=["id", "customer", "router", "username", "profile", "enabled", "last_synced"]),
            use_container_width=True, hide_index=True,
        )
        remove_id = st.selectbox("Remove user", ["(none)"] + [u.id for u in users])
        if st.button("Remove", disabled=remove_id == "(none)"):
            act(store, mikrotik.remove_user, remove_id, success="User removed.")
            st.rerun()


def payment_settings_page(store, data):
    st.header("🏦 Payment Settings")
    manual_tab, gateway_tab = st.tabs(["Manual transfer", "Gateway"])

    with manual_tab:
        st.dataframe(
            pd.DataFrame([{"id": a.id, "type": a.type.value, "provider": a.provider_name,
                           "number": a.account_number, "holder": a.account_holder} for a in data.payment_accounts],
                         columns=["id", "type", "provider", "number", "holder"]),
            use_container_width=True, hide_index=True,
        )
        selected = st.selectbox("Account", ["(new)"] + [a.id for a in data.payment_accounts])
        existing = data.find("payment_accounts", selected) if selected != "(new)" else None
        types = [t.value for t in PaymentType]
        col1, col2 = st.columns(2)
        with col1:
            type_ = st.selectbox("Type", types, index=(types.index(existing.type.value) if existing else 0),
                                 key=f"acc_type_{selected}")
            provider = st.text_input("Provider (bank / wallet)", value=(existing.provider_name if existing else ""),
                                     key=f"acc_provider_{selected}")
        with col2:
            number = st.text_input("Account number", value=(existing.account_number if existing else ""),
                                   key=f"acc_number_{selected}")
            holder = st.text_input("Account holder", value=(existing.account_holder if existing else ""),
                                   key=f"acc_holder_{selected}")

        errors = utils.validate_payment_account_inputs(provider, number, holder)
        for e in errors:
            st.error(e)

        c1, c2 = st.columns(2)
        with c1:
            if st.button("Save", type="primary", disabled=bool(errors), key="acc_save"):
                if existing:
                    act(store, registry.update_payment_account, existing.id, type=type_, provider_name=provider.strip(),
                        account_number=number.strip(), account_holder=holder.strip(), success="Account updated.")
                else:
                    act(store, registry.add_payment_account, type_, provider, number, holder, success="Account added.")
                st.rerun()
        with c2:
            if existing:
                confirm = st.checkbox("Confirm delete", key="del_acc_confirm")
                if st.button("Delete", disabled=not confirm, key="acc_delete"):
                    act(store, registry.delete_payment_account, existing.id, success="Account deleted.")
                    st.rerun()

    with gateway_tab:
        gw = data.gateway_config
        providers = [p.value for p in GatewayProvider]
        provider = st.selectbox("Provider", providers, index=providers.index(gw.provider.value))
        is_active = st.toggle("Active", value=gw.is_active)
        is_sandbox = st.toggle("Sandbox mode", value=gw.is_sandbox)
        merchant_id = st.text_input("Merchant ID", value=gw.merchant_id or "")
        client_key = st.text_input("Client key", value=gw.client_key or "")
        server_key = st.text_input("Server key", value=gw.server_key or "", type="password")
        st.caption("Stored for display only; no gateway calls are made.")
        if st.button("Save gateway", type="primary"):
            act(store, registry.update_gateway_config,
                PaymentGatewayConfig(provider=GatewayProvider(provider), is_active=is_active, is_sandbox=is_sandbox,
                                     merchant_id=merchant_id, client_key=client_key, server_key=server_key),
                success="Gateway settings saved.")
            st.rerun()


def settings_page(store, data):
    st.header("⚙️ Settings")
    profile = data.admin_profile

    st.subheader("Business & account")
    business_name = st.text_input("Business name", value=profile.business_name)
    name = st.text_input("Display name", value=profile.name)
    username = st.text_input("Login username", value=profile.username)

    st.subheader("Auto-billing")
    auto = st.toggle("Create bills automatically when an admin logs in", value=profile.auto_billing_enabled)
    billing_day = st.number_input("Billing day (1 - 28)", min_value=1, max_value=28, value=profile.billing_day,
                                  disabled=not auto)

    if st.button("Save settings", type="primary"):
        if not username.strip():
            st.error("Username is required.")
        else:
            act(store, registry.update_admin_profile, business_name=business_name.strip(), name=name.strip(),
                username=username.strip(), auto_billing_enabled=auto, billing_day=int(billing_day),
                success="Settings saved.")
            st.rerun()

    st.divider()

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        result = act(store, auth.change_admin_password, p1, p2)
        if result is not None:
            for e in result[1]:
                st.error(e)
            if not result[1]:
                st.success("Password updated.")


def collector_profile_page(store, data, collector_id):
    st.header("🙍 My Profile")
    collector = data.get("collectors", collector_id)

    name = st.text_input("Name", value=collector.name)
    phone = st.text_input("Phone", value=collector.phone)
    p1 = st.text_input("New password (optional)", type="password")
    p2 = st.text_input("Confirm new password", type="password")

    errors = utils.validate_collector_inputs(name, phone)
    for e in errors:
        st.error(e)

    if st.button("Save", type="primary", disabled=bool(errors)):
        if p1:
            result = act(store, auth.change_collector_password, collector_id, p1, p2)
            if result is None:
                st.rerun()
            if result[1]:
                for e in result[1]:
                    st.error(e)
                return
        act(store, registry.update_collector, collector_id, name=name.strip(), phone=phone.strip(),
            success="Profile updated.")
        st.rerun()


# ---------- Customer portal ----------

def portal_home(store, data, customer):
    package = data.find("packages", customer.package_id)
    st.subheader(f"Hello, {customer.name}")
    c1, c2 = st.columns(2)
    c1.metric("Package", package.name if package else "-", package.speed if package else None)
    c2.metric("Status", customer.status.value)

    unpaid = [b for b in billing.customer_history(data, customer.id) if b.status != BillStatus.PAID]
    if not unpaid:
        st.success("All bills are paid. Thank you!")
        return
    for b in unpaid:
        overdue = billing.is_overdue(b)
        st.warning(
            f"{utils.month_label(b.month)} {b.year}: {utils.format_idr(b.total_payable)} "
            f"(due {b.due_date}){' - OVERDUE' if overdue else ''} - {b.status.value}"
        )


def portal_payment(store, data, customer):
    st.subheader("Pay a bill")
    unpaid = [b for b in billing.customer_history(data, customer.id) if b.status == BillStatus.UNPAID]
    if not unpaid:
        st.info("No unpaid bills.")
        return

    labels = {b.id: f"{utils.month_label(b.month)} {b.year} - {utils.format_idr(b.total_payable)}" for b in unpaid}
    bill_id = st.selectbox("Bill", list(labels), format_func=labels.get)

    methods = {}
    gw = data.gateway_config
    if gw.is_active and gw.provider != GatewayProvider.MANUAL:
        methods[gw.provider.value] = f"Pay online via {gw.provider.value}{' (sandbox)' if gw.is_sandbox else ''}"
    for a in data.payment_accounts:
        methods[f"{a.type.value} {a.provider_name}"] = f"{a.provider_name}: {a.account_number} a.n. {a.account_holder}"

    if not methods:
        st.info("No payment methods configured. Please contact the admin.")
        return

    method = st.radio("Method", list(methods), format_func=lambda m: methods[m])
    st.caption("Transfer the exact amount, then confirm below. The admin will verify your payment.")
    if st.button("I have paid", type="primary"):
        act(store, billing.confirm_payment, bill_id, method,
            success="Payment confirmation sent. Waiting for admin verification.")
        st.rerun()


def portal_history(store, data, customer):
    st.subheader("Bill history")
    st.dataframe(bills_frame(data, billing.customer_history(data, customer.id)).drop(columns=["customer", "collector"]),
                 use_container_width=True, hide_index=True)


def portal_packages(store, data, customer):
    st.subheader("Packages")
    current = data.find("packages", customer.package_id)
    for p in data.packages:
        with st.container(border=True):
            st.write(f"**{p.name}** - {p.speed} - {utils.format_idr(p.price)}")
            st.caption(p.description)
            if current and p.id == current.id:
                st.write("✅ Current package")
            elif st.button("Request change", key=f"req_{p.id}"):
                action = "Upgrade" if p.price > (current.price if current else 0) else "Downgrade"
                st.success(f"{action} request sent. The admin will contact you.")


def portal_profile(store, data, customer):
    st.subheader("Change password")
    old = st.text_input("Old password", type="password") if customer.password else ""
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        result = act(store, auth.change_customer_password, customer.id, old, p1, p2)
        if result is not None:
            for e in result[1]:
                st.error(e)
            if not result[1]:
                flash("success", "Password updated.")
                st.rerun()


def customer_portal(store, data, customer_id):
    customer = data.get("customers", customer_id)
    st.sidebar.title(f"📶 {data.admin_profile.business_name}")
    st.sidebar.caption(f"Customer: {customer.name} ({customer.id})")

    pages = {
        "Home": portal_home,
        "Pay": portal_payment,
        "History": portal_history,
        "Packages": portal_packages,
        "Profile": portal_profile,
    }
    page = st.sidebar.radio("Navigate", list(pages))
    if st.sidebar.button("Logout"):
        logout()
        st.rerun()
    with st.sidebar:
        sync_watcher(store)
    pages[page](store, data, customer)


# ---------- Admin / collector shell ----------

def main_app(store, data, session):
    if session.role == "collector":
        collector = data.get("collectors", session.collector_id)
        st.sidebar.title("🛵 Collector")
        st.sidebar.caption(f"Logged in as: {collector.name}")
        pages = {
            "Dashboard": lambda: dashboard_page(store, data, collector_id=collector.id),
            "Bills": lambda: billing_page(store, data, collector_id=collector.id),
            "Profile": lambda: collector_profile_page(store, data, collector.id),
        }
    else:
        st.sidebar.title(f"📶 {data.admin_profile.business_name}")
        st.sidebar.caption(f"Logged in as: {data.admin_profile.name}")
        pages = {
            "Dashboard": lambda: dashboard_page(store, data),
            "Customers": lambda: customers_page(store, data),
            "Packages": lambda: packages_page(store, data),
            "Bills": lambda: billing_page(store, data),
            "Collectors": lambda: collectors_page(store, data),
            "Mikrotik": lambda: mikrotik_page(store, data),
            "Payment Settings": lambda: payment_settings_page(store, data),
            "Settings": lambda: settings_page(store, data),
        }

    names = list(pages)
    if st.session_state.get("page") not in names:
        st.session_state.page = names[0]
    st.session_state.page = st.sidebar.radio("Navigate", names, index=names.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()
    with st.sidebar:
        sync_watcher(store)

    pages[st.session_state.page]()


# --------- App entry ---------

def run():
    store = init_once()
    require_login()

    doc = store.load()
    st.session_state.doc_digest = document_digest(doc)
    data = Dataset.from_doc(doc)

    session = auth.resolve_session(data, current_session())
    set_session(session)
    show_flash()

    if session.role is None:
        login_screen(store, data)
        return

    if session.role == "admin":
        # Force password change on first login after the store is seeded
        if data.admin_profile.force_password_change:
            force_change_password_screen(store)
            return
        # Auto-billing runs once per admin session entry
        if not st.session_state.get("auto_billing_checked"):
            st.session_state.auto_billing_checked = True
            created = actions.enter_admin_session(store)
            if created:
                flash("success", f"Auto-billing created {len(created)} bill(s) for this month.")
                st.rerun()

    if session.role == "customer":
        customer_portal(store, data, session.customer_id)
    else:
        main_app(store, data, session)


if __name__ == "__main__":
    run()
