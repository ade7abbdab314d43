"""
Streamlit Frontend for Tally

The screens the user works with every day:
- Dashboard: who owes whom, in total and per person
- People: search, add (by hand or from a contact), open, delete
- New Tally: record a lend or borrow
- Activity: recent changes and configuration status

DESIGN PRINCIPLES:
1. Screens hold no ledger rules; every change goes through LedgerService
2. After every change the page re-reads what it shows (st.rerun)
3. Submit buttons are disabled until the advisory validation passes
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

import streamlit as st

from tally.config import get_settings, validate_all_settings
from tally.formatting import format_currency, format_date, format_short_date
from tally.models.ledger import (
    AlreadySettledError,
    Contact,
    PaymentMode,
    Person,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from tally.orchestrator import LedgerService, create_app_components
from tally.services.blobs import BlobStoreError
from tally.services.storage import StorageError
from tally.validation import LedgerValidationError


st.set_page_config(
    page_title="Tally",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except StorageError as e:
        st.error(f"Failed to open the ledger database: {e}")
        return create_app_components(use_storage=False)


def money(amount: Decimal) -> str:
    return format_currency(amount, get_settings().app.currency_symbol)


def _to_datetime(value: Optional[date]) -> Optional[datetime]:
    return datetime.combine(value, time()) if value else None


def main():
    """Main application entry point."""
    service, audit_logger = get_components()

    st.sidebar.title("💸 Tally")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "👥 People", "➕ New Tally", "🕑 Activity"],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard_page(service)
    elif page == "👥 People":
        render_people_page(service)
    elif page == "➕ New Tally":
        render_new_tally_page(service)
    elif page == "🕑 Activity":
        render_activity_page(audit_logger)


def render_dashboard_page(service: LedgerService):
    """Global totals, per-person breakdown and recent pending records."""
    st.title("📊 Dashboard")

    dashboard = service.dashboard()
    totals = dashboard.totals

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Lent", money(totals.total_lent))
    col2.metric("Total Borrowed", money(totals.total_borrowed))
    col3.metric("Net Balance", money(abs(totals.net_balance)))
    col3.caption(totals.description)

    st.markdown("---")
    st.subheader("Per-User Breakdown")
    if not dashboard.breakdown:
        st.info("No pending transactions")
    for row in dashboard.breakdown:
        left, right = st.columns([3, 1])
        left.markdown(f"**{row.person.name}**  \n{row.person.mobile}")
        right.markdown(
            f"**{money(abs(row.net_balance))}**  \n"
            f"{'To Receive' if row.to_receive else 'To Pay'}"
        )

    if dashboard.recent_pending:
        st.markdown("---")
        st.subheader("Recent Pending")
        names = {p.id: p.name for p in service.list_people()}
        for txn in dashboard.recent_pending:
            arrow = "⬆️" if txn.type == TransactionType.LEND else "⬇️"
            st.markdown(
                f"{arrow} **{names.get(txn.person_id, 'Unknown')}** · "
                f"{format_short_date(txn.date)} · {money(txn.amount)}"
            )


def render_people_page(service: LedgerService):
    """People list with search, add form and detail view."""
    st.title("👥 People")

    search = st.text_input("Search by name or mobile", key="people_search")
    people = service.list_people(search=search)

    with st.expander("➕ Add Person"):
        render_add_person_form(service)

    if not people:
        st.info("Add people to track lend and borrow transactions")
        return

    selected = st.selectbox(
        "Person",
        options=people,
        format_func=lambda p: (
            f"{p.name} ({p.relationship})" if p.relationship else p.name
        ),
    )
    if selected:
        render_person_detail(service, selected)


def render_add_person_form(service: LedgerService):
    name = st.text_input("Name *", key="new_person_name")
    mobile = st.text_input("Mobile *", key="new_person_mobile")
    relationship = st.text_input("Relationship (optional)", key="new_person_relationship")

    check = service.validator.check_person(name, mobile)
    if st.button("Save Person", type="primary", disabled=not check.is_valid):
        try:
            person = service.create_person(name, mobile, relationship)
            st.success(f"Added {person.name}")
            st.rerun()
        except (LedgerValidationError, StorageError) as e:
            st.error(str(e))

    st.markdown("**Or import a contact**")
    vcard_name = st.text_input("Contact name", key="contact_name")
    vcard_phone = st.text_input("Contact phone", key="contact_phone")
    if st.button("Add from Contact", disabled=not vcard_phone.strip()):
        given, _, family = vcard_name.strip().partition(" ")
        contact = Contact(
            given_name=given,
            family_name=family,
            phone_numbers=[vcard_phone],
        )
        try:
            service.create_person_from_contact(contact)
            st.rerun()
        except (LedgerValidationError, StorageError) as e:
            st.error(str(e))


def render_person_detail(service: LedgerService, person: Person):
    """Summary, pending and settled transactions for one person."""
    st.markdown("---")
    st.subheader(person.name)
    st.caption(person.mobile)

    summary = service.person_summary(person)
    col1, col2, col3 = st.columns(3)
    col1.metric("Total Lent", money(summary.total_lent))
    col2.metric("Total Borrowed", money(summary.total_borrowed))
    col3.metric("Net Balance", summary.description)

    transactions = service.list_transactions(TransactionFilter(person_id=person.id))
    pending = [t for t in transactions if t.is_pending]
    settled = [t for t in transactions if t.is_completed]

    st.markdown("#### Pending")
    if not pending:
        st.caption("Nothing pending")
    for txn in pending:
        render_transaction(service, txn)

    if settled:
        st.markdown("#### Settled")
        for txn in settled:
            render_transaction(service, txn)

    st.markdown("---")
    if st.button(f"🗑️ Delete {person.name}", key=f"delete_{person.id}"):
        removed = service.delete_person(person)
        st.warning(f"Deleted {person.name} and {removed} transactions")
        st.rerun()


def render_transaction(service: LedgerService, txn: Transaction):
    title = (
        f"{txn.type.value} · {money(txn.amount)} · {format_date(txn.date)}"
        f"{' ✅' if txn.is_completed else ''}"
    )
    with st.expander(title):
        st.markdown(f"**Mode:** {txn.mode.value}")
        if txn.return_date:
            st.markdown(f"**Return by:** {format_date(txn.return_date)}")
        if txn.note:
            st.markdown(f"**Note:** {txn.note}")
        if txn.record_image_key:
            st.image(service.load_image(txn.record_image_key), width=300)

        if txn.is_completed:
            st.markdown(f"**Settled On:** {format_date(txn.completion_date)}")
            st.markdown(f"**Settlement Mode:** {txn.completion_mode.value}")
            if txn.completion_proof_image_key:
                st.image(service.load_image(txn.completion_proof_image_key), width=300)
        else:
            render_settlement_form(service, txn.id)

        if st.button("Delete", key=f"delete_txn_{txn.id}"):
            service.delete_transaction(txn)
            st.rerun()


def render_settlement_form(service: LedgerService, transaction_id: UUID):
    mode = st.selectbox(
        "Payment Mode",
        options=list(PaymentMode),
        format_func=lambda m: m.value,
        key=f"settle_mode_{transaction_id}",
    )
    proof = st.file_uploader(
        "Settlement proof (optional)",
        type=["jpg", "jpeg", "png", "webp", "heic"],
        key=f"settle_proof_{transaction_id}",
    )
    if st.button("✅ Confirm Settlement", key=f"settle_{transaction_id}", type="primary"):
        try:
            service.settle(
                transaction_id,
                mode=mode,
                proof_image=proof.read() if proof else None,
            )
            st.rerun()
        except AlreadySettledError:
            st.info("This transaction was already settled")
        except BlobStoreError as e:
            st.error(f"Could not store the proof image: {e}")


def render_new_tally_page(service: LedgerService):
    """Record a lend or borrow."""
    st.title("➕ New Tally")

    people = service.list_people()
    if not people:
        st.info("Add a person first on the People page")
        return

    person = st.selectbox(
        "Person *",
        options=people,
        format_func=lambda p: f"{p.name} · {p.mobile}",
    )
    txn_type = st.radio(
        "Type",
        options=list(TransactionType),
        format_func=lambda t: t.value,
        horizontal=True,
    )

    col1, col2 = st.columns(2)
    with col1:
        amount = st.number_input(
            f"Amount ({get_settings().app.currency_code}) *",
            min_value=0.0,
            step=1.0,
            format="%.2f",
        )
        mode = st.selectbox(
            "Payment Mode",
            options=list(PaymentMode),
            format_func=lambda m: m.value,
        )
    with col2:
        txn_date = st.date_input("Date", value=date.today())
        return_date = st.date_input("Return Date (optional)", value=None, min_value=date.today())

    note = st.text_area("Note (optional)")
    receipt = st.file_uploader(
        "Receipt photo (optional)",
        type=["jpg", "jpeg", "png", "webp", "heic"],
    )

    amount_value = Decimal(str(amount))
    check = service.validator.check_transaction(amount_value, person)
    if not check.is_valid:
        st.caption(check.message_for("amount") or check.message_for("person"))

    if st.button("Save", type="primary", disabled=not check.is_valid):
        try:
            txn = service.create_transaction(
                amount=amount_value,
                type=txn_type,
                person=person,
                date=_to_datetime(txn_date),
                mode=mode,
                return_date=_to_datetime(return_date),
                record_image=receipt.read() if receipt else None,
                note=note,
            )
            st.success(f"{txn.type.value} of {money(txn.amount)} saved for {person.name}")
        except (LedgerValidationError, BlobStoreError, StorageError) as e:
            st.error(f"Failed to save: {e}")


def render_activity_page(audit_logger):
    """Recent audit events and configuration status."""
    st.title("🕑 Activity")

    events = audit_logger.storage.get_recent_events(limit=50) if audit_logger.storage else []
    if not events:
        st.info("No activity yet in this session")
    for event in events:
        st.markdown(f"`{event.timestamp:%H:%M:%S}` {event.description}")

    st.markdown("---")
    st.markdown("### Configuration")
    status = validate_all_settings()
    for key in ("storage", "blobs", "app"):
        if status.get(key, False):
            st.success(f"✅ {key}")
        else:
            st.error(f"❌ {key} - {status.get(f'{key}_error', 'Not configured')}")


if __name__ == "__main__":
    main()
