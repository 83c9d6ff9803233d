"""Karbon payload -> local row mappers.

Each mapper is a pure function of its input apart from ``last_synced_at``.
Bulk sync and webhook ingestion both go through these, so a record written
by either path has identical column values.
"""

from __future__ import annotations

from typing import Any

from .field_mapper import (
    address_fields,
    as_bool,
    as_dict,
    as_float,
    as_int,
    as_list,
    card_emails,
    first_present,
    first_website,
    karbon_app_url,
    parse_date,
    parse_tax_year,
    parse_timestamp,
    pick_address,
    pick_phone,
    primary_business_card,
    registration_numbers,
    registration_value,
    text,
    utcnow,
)


def _json(value: Any, default: Any = None) -> Any:
    if value is None or value == "":
        return default
    return value


def map_user(user: dict) -> dict:
    first_name = text(user.get("FirstName"))
    last_name = text(user.get("LastName"))
    user_key = first_present(user.get("UserKey"), user.get("MemberKey"))
    email = first_present(user.get("EmailAddress"), user.get("Email"))
    joined = " ".join(part for part in (first_name, last_name) if part)
    return {
        "karbon_user_key": user_key,
        "first_name": first_name,
        "last_name": last_name,
        "full_name": first_present(user.get("FullName"), joined, email) or "Unknown",
        "email": email,
        "title": first_present(user.get("Title"), user.get("JobTitle")),
        "role": first_present(user.get("Role"), user.get("UserRole")),
        "department": text(user.get("Department")),
        "phone_number": first_present(user.get("PhoneNumber"), user.get("WorkPhone")),
        "mobile_number": first_present(user.get("MobileNumber"), user.get("Mobile")),
        "avatar_url": first_present(user.get("AvatarUrl"), user.get("ProfileImageUrl")),
        "timezone": first_present(user.get("TimeZone"), user.get("Timezone")),
        "start_date": parse_date(user.get("StartDate")),
        "karbon_is_active": user.get("IsActive") is not False,
        "karbon_url": karbon_app_url("users", user_key),
        "karbon_created_at": parse_timestamp(user.get("CreatedDateTime")),
        "karbon_modified_at": parse_timestamp(user.get("LastModifiedDateTime")),
        "last_synced_at": utcnow(),
    }


def contact_full_name(contact: dict, card: dict | None = None) -> str | None:
    """FullName, then the primary card's FullName, then "First Last", then PreferredName."""
    card = card if card is not None else primary_business_card(contact)
    joined = " ".join(
        part for part in (text(contact.get("FirstName")), text(contact.get("LastName"))) if part
    )
    return first_present(
        contact.get("FullName"),
        card.get("FullName"),
        joined,
        contact.get("PreferredName"),
    )


def map_contact(contact: dict) -> dict:
    card = primary_business_card(contact)
    accounting = as_dict(contact.get("AccountingDetail"))
    registrations = registration_numbers(accounting)
    emails = card_emails(card)
    ssn = registration_value(registrations, "SSN", "Social")
    key = text(contact.get("ContactKey"))
    contact_type = text(contact.get("ContactType"))

    record = {
        "karbon_contact_key": key,
        "first_name": text(contact.get("FirstName")),
        "last_name": text(contact.get("LastName")),
        "middle_name": text(contact.get("MiddleName")),
        "preferred_name": text(contact.get("PreferredName")),
        "salutation": text(contact.get("Salutation")),
        "prefix": text(contact.get("Prefix")),
        "suffix": text(contact.get("Suffix")),
        "full_name": contact_full_name(contact, card),
        "contact_type": contact_type or "Individual",
        "entity_type": text(accounting.get("EntityType")) or "Individual",
        "status": text(contact.get("Status")) or "Active",
        "restriction_level": text(contact.get("RestrictionLevel")),
        "is_prospect": contact_type == "Prospect",
        "avatar_url": text(contact.get("AvatarUrl")),
        "primary_email": first_present(contact.get("EmailAddress"), *emails[:1]),
        "secondary_email": emails[1] if len(emails) > 1 else None,
        "phone_primary": first_present(contact.get("PhoneNumber"), pick_phone(card)),
        "phone_mobile": pick_phone(card, "Mobile"),
        "phone_work": pick_phone(card, "Work"),
        "phone_fax": pick_phone(card, "Fax"),
        "date_of_birth": parse_date(accounting.get("BirthDate")),
        "ein": registration_value(registrations, "EIN", "Employer"),
        "ssn_last_four": ssn[-4:] if ssn else None,
        "occupation": first_present(contact.get("Occupation"), accounting.get("Occupation")),
        "employer": text(contact.get("Employer")),
        "source": text(contact.get("Source")),
        "referred_by": text(contact.get("ReferredBy")),
        "linkedin_url": text(card.get("LinkedInLink")),
        "twitter_handle": text(card.get("TwitterLink")),
        "facebook_url": text(card.get("FacebookLink")),
        "website": first_website(card),
        "client_owner_key": text(contact.get("ClientOwnerKey")),
        "client_manager_key": text(contact.get("ClientManagerKey")),
        "client_partner_key": text(contact.get("ClientPartnerKey")),
        "user_defined_identifier": text(contact.get("UserDefinedIdentifier")),
        "registration_numbers": _json(accounting.get("RegistrationNumbers")),
        "business_cards": [c for c in as_list(contact.get("BusinessCards")) if isinstance(c, dict)],
        "accounting_detail": accounting or None,
        "assigned_team_members": _json(contact.get("AssignedTeamMembers"), []),
        "tags": _json(contact.get("Tags"), []),
        "custom_fields": _json(contact.get("CustomFields"), {}),
        "notes": first_present(as_dict(accounting.get("Notes")).get("Body"), contact.get("Notes")),
        "karbon_url": karbon_app_url("contacts", key),
        "karbon_created_at": parse_timestamp(contact.get("CreatedDateTime")),
        "karbon_modified_at": parse_timestamp(contact.get("LastModifiedDateTime")),
        "last_synced_at": utcnow(),
    }
    record.update(address_fields(pick_address(card, "Physical")))
    record.update(
        address_fields(pick_address(card, "Mailing", fallback_first=False), prefix="mailing_")
    )
    return record


def map_organization(org: dict) -> dict:
    card = primary_business_card(org)
    accounting = as_dict(org.get("AccountingDetail"))
    registrations = registration_numbers(accounting)
    emails = card_emails(card)
    key = text(org.get("OrganizationKey"))
    contact_type = text(org.get("ContactType"))
    gst = registration_value(registrations, "GST")

    record = {
        "karbon_organization_key": key,
        "name": first_present(org.get("OrganizationName"), org.get("Name"))
        or f"Organization {key}",
        "full_name": first_present(org.get("FullName"), org.get("OrganizationName"), org.get("Name")),
        "legal_name": text(org.get("LegalName")),
        "trading_name": text(org.get("TradingName")),
        "description": text(org.get("Description")),
        "entity_type": text(accounting.get("EntityType")) or contact_type or "Organization",
        "contact_type": contact_type,
        "restriction_level": text(org.get("RestrictionLevel")),
        "user_defined_identifier": text(org.get("UserDefinedIdentifier")),
        "industry": text(org.get("Industry")),
        "line_of_business": text(org.get("LineOfBusiness")),
        "primary_email": first_present(org.get("EmailAddress"), *emails[:1]),
        "phone": first_present(org.get("PhoneNumber"), pick_phone(card)),
        "website": first_website(card),
        "linkedin_url": text(card.get("LinkedInLink")),
        "twitter_handle": text(card.get("TwitterLink")),
        "facebook_url": text(card.get("FacebookLink")),
        "ein": registration_value(registrations, "EIN", "Employer"),
        "gst_number": gst,
        "gst_registered": any("GST" in str(r.get("Type") or "") for r in registrations),
        "business_number": registration_value(registrations, "Business"),
        "tax_number": registration_value(registrations, "Tax", exclude="Sales"),
        "fiscal_year_end_month": as_int(
            org.get("FinancialYearEndMonth") or accounting.get("FiscalYearEndMonth")
        ),
        "fiscal_year_end_day": as_int(
            org.get("FinancialYearEndDay") or accounting.get("FiscalYearEndDay")
        ),
        "base_currency": text(accounting.get("BaseCurrency")),
        "tax_country_code": text(accounting.get("TaxCountryCode")),
        "pays_tax": as_bool(accounting.get("PaysTax"), None),
        "is_vat_registered": as_bool(accounting.get("IsVATRegistered"), None),
        "client_owner_key": text(org.get("ClientOwnerKey")),
        "client_manager_key": text(org.get("ClientManagerKey")),
        "client_partner_key": text(org.get("ClientPartnerKey")),
        "parent_organization_key": text(org.get("ParentOrganizationKey")),
        "business_cards": [c for c in as_list(org.get("BusinessCards")) if isinstance(c, dict)],
        "assigned_team_members": _json(org.get("AssignedTeamMembers"), []),
        "custom_fields": _json(org.get("CustomFieldValues") or org.get("CustomFields"), {}),
        "karbon_url": karbon_app_url("organizations", key),
        "karbon_created_at": parse_timestamp(org.get("CreatedDateTime")),
        "karbon_modified_at": parse_timestamp(org.get("LastModifiedDateTime")),
        "last_synced_at": utcnow(),
    }
    record.update(address_fields(pick_address(card, "Physical")))
    return record


def map_client_group(group: dict) -> dict:
    key = text(group.get("ClientGroupKey"))
    return {
        "karbon_client_group_key": key,
        "name": first_present(group.get("FullName"), group.get("Name")) or f"Group {key}",
        "description": first_present(group.get("EntityDescription"), group.get("Description")),
        "group_type": first_present(group.get("ContactType"), group.get("GroupType")),
        "contact_type": text(group.get("ContactType")),
        "primary_contact_key": text(group.get("PrimaryContactKey")),
        "primary_contact_name": text(group.get("PrimaryContactName")),
        "client_owner_key": text(group.get("ClientOwner")),
        "client_owner_name": text(group.get("ClientOwnerName")),
        "client_manager_key": text(group.get("ClientManager")),
        "client_manager_name": text(group.get("ClientManagerName")),
        "members": _json(group.get("Members"), []),
        "restriction_level": text(group.get("RestrictionLevel")) or "Public",
        "user_defined_identifier": text(group.get("UserDefinedIdentifier")),
        "karbon_url": karbon_app_url("client-groups", key),
        "karbon_created_at": parse_timestamp(group.get("CreatedDate")),
        "karbon_modified_at": parse_timestamp(group.get("LastModifiedDateTime")),
        "last_synced_at": utcnow(),
    }


def map_work_item(item: dict) -> dict:
    fee = as_dict(item.get("FeeSettings"))
    budget = as_dict(item.get("Budget"))
    fee_type = text(fee.get("FeeType"))
    fee_value = as_float(fee.get("FeeValue"))
    budget_hours = as_float(budget.get("BudgetedHours"))
    key = first_present(item.get("WorkItemKey"), item.get("WorkKey"))
    primary_status = text(item.get("PrimaryStatus"))
    secondary_status = text(item.get("SecondaryStatus"))

    return {
        "karbon_work_item_key": key,
        "karbon_client_key": text(item.get("ClientKey")),
        "client_type": text(item.get("ClientType")),
        "client_name": text(item.get("ClientName")),
        "client_owner_key": text(item.get("ClientOwnerKey")),
        "client_owner_name": text(item.get("ClientOwnerName")),
        "client_group_key": first_present(item.get("RelatedClientGroupKey"), item.get("ClientGroupKey")),
        "client_group_name": text(item.get("RelatedClientGroupName")),
        "assignee_key": text(item.get("AssigneeKey")),
        "assignee_name": text(item.get("AssigneeName")),
        "client_manager_key": text(item.get("ClientManagerKey")),
        "client_manager_name": text(item.get("ClientManagerName")),
        "client_partner_key": text(item.get("ClientPartnerKey")),
        "client_partner_name": text(item.get("ClientPartnerName")),
        "title": text(item.get("Title")),
        "description": text(item.get("Description")),
        "work_type": text(item.get("WorkType")),
        "workflow_status": text(item.get("WorkStatus")),
        "status": primary_status,
        "status_code": secondary_status,
        "primary_status": primary_status,
        "secondary_status": secondary_status,
        "work_status_key": text(item.get("WorkStatusKey")),
        "user_defined_identifier": text(item.get("UserDefinedIdentifier")),
        "start_date": parse_date(item.get("StartDate")),
        "due_date": parse_date(item.get("DueDate")),
        "completed_date": parse_date(item.get("CompletedDate")),
        "year_end": parse_date(item.get("YearEnd")),
        "tax_year": parse_tax_year(item),
        "period_start": parse_date(item.get("PeriodStart")),
        "period_end": parse_date(item.get("PeriodEnd")),
        "internal_due_date": parse_date(item.get("InternalDueDate")),
        "regulatory_deadline": parse_date(item.get("RegulatoryDeadline")),
        "client_deadline": parse_date(item.get("ClientDeadline")),
        "extension_date": parse_date(item.get("ExtensionDate")),
        "work_template_key": text(item.get("WorkTemplateKey")),
        "work_template_name": first_present(item.get("WorkTemplateTitle"), item.get("WorkTemplateTile")),
        "fee_type": fee_type,
        "estimated_fee": fee_value,
        "fixed_fee_amount": fee_value if fee_type == "Fixed" else None,
        "hourly_rate": fee_value if fee_type == "Hourly" else None,
        "estimated_minutes": as_int(item.get("EstimatedBudgetMinutes")),
        "actual_minutes": as_int(item.get("ActualBudget")),
        "billable_minutes": as_int(item.get("BillableTime")),
        "budget_minutes": round(budget_hours * 60) if budget_hours else None,
        "budget_hours": budget_hours,
        "budget_amount": as_float(budget.get("BudgetedAmount")),
        "actual_hours": as_float(item.get("ActualHours")),
        "actual_amount": as_float(item.get("ActualAmount")),
        "actual_fee": as_float(item.get("ActualFee")),
        "todo_count": as_int(item.get("TodoCount")) or 0,
        "completed_todo_count": as_int(item.get("CompletedTodoCount")) or 0,
        "has_blocking_todos": bool(as_bool(item.get("HasBlockingTodos"))),
        "priority": text(item.get("Priority")) or "Normal",
        "tags": _json(item.get("Tags"), []),
        "is_recurring": bool(as_bool(item.get("IsRecurring"))),
        "is_billable": bool(as_bool(item.get("IsBillable"), True)),
        "is_internal": bool(as_bool(item.get("IsInternal"))),
        "notes": text(item.get("Notes")),
        "custom_fields": _json(item.get("CustomFields"), {}),
        "related_work_keys": _json(item.get("RelatedWorkKeys"), []),
        "karbon_url": karbon_app_url("work-items", key),
        "karbon_created_at": parse_timestamp(item.get("CreatedDate") or item.get("CreatedDateTime")),
        "karbon_modified_at": parse_timestamp(
            item.get("LastModifiedDateTime") or item.get("ModifiedDate")
        ),
        "last_synced_at": utcnow(),
    }


def map_task(task: dict) -> dict:
    # Integration tasks keep most of their fields inside a nested Data object.
    data = as_dict(task.get("Data"))
    key = first_present(task.get("IntegrationTaskKey"), task.get("TaskKey"), task.get("Key"))
    return {
        "karbon_task_key": key,
        "task_definition_key": text(task.get("TaskDefinitionKey")),
        "title": first_present(data.get("Title"), task.get("Title")),
        "description": first_present(data.get("Description"), task.get("Description")),
        "status": text(task.get("Status")),
        "priority": first_present(data.get("Priority"), task.get("Priority")) or "Normal",
        "due_date": parse_date(data.get("DueDate") or task.get("DueDate")),
        "completed_date": parse_date(data.get("CompletedDate") or task.get("CompletedDate")),
        "assignee_key": first_present(data.get("AssigneeKey"), task.get("AssigneeKey")),
        "assignee_name": first_present(data.get("AssigneeName"), task.get("AssigneeName")),
        "assignee_email": first_present(
            data.get("AssigneeEmailAddress"), task.get("AssigneeEmailAddress")
        ),
        "karbon_work_item_key": text(task.get("WorkItemKey")),
        "karbon_contact_key": first_present(task.get("WorkItemClientKey"), task.get("ContactKey")),
        "is_blocking": bool(as_bool(data.get("IsBlocking"))),
        "estimated_minutes": as_int(data.get("EstimatedMinutes")),
        "actual_minutes": as_int(data.get("ActualMinutes")),
        "task_data": data or None,
        "karbon_url": karbon_app_url("tasks", key),
        "karbon_created_at": parse_timestamp(task.get("CreatedAt") or task.get("CreatedDate")),
        "karbon_modified_at": parse_timestamp(
            task.get("UpdatedAt") or task.get("LastModifiedDateTime")
        ),
        "last_synced_at": utcnow(),
    }


def map_timesheet_entry(entry: dict, parent: dict | None = None, index: int = 0) -> dict:
    parent = parent or {}
    entry_date = parse_date(entry.get("Date"))
    key = first_present(entry.get("TimeEntryKey"), entry.get("TimesheetKey"))
    if not key:
        # Entries without their own key get a stable composite one.
        key = "-".join(
            (
                text(parent.get("TimesheetKey")) or "ts",
                entry_date.isoformat() if entry_date else "nodate",
                text(entry.get("WorkItemKey")) or "nowi",
                str(index),
            )
        )
    minutes = as_int(entry.get("Minutes")) or 0
    hourly_rate = as_float(entry.get("HourlyRate"))
    parent_key = text(parent.get("TimesheetKey"))

    return {
        "karbon_timesheet_key": key,
        "date": entry_date or parse_date(parent.get("StartDate")),
        "minutes": minutes,
        "description": first_present(entry.get("TaskTypeName"), entry.get("Description")),
        "is_billable": bool(as_bool(entry.get("IsBillable"), True)),
        "billing_status": first_present(entry.get("BillingStatus"), parent.get("Status")),
        "hourly_rate": hourly_rate,
        "billed_amount": (hourly_rate * minutes) / 60 if hourly_rate and minutes else None,
        "user_key": first_present(entry.get("UserKey"), parent.get("UserKey")),
        "user_name": first_present(entry.get("UserName"), parent.get("UserName")),
        "karbon_work_item_key": text(entry.get("WorkItemKey")),
        "work_item_title": text(entry.get("WorkItemTitle")),
        "client_key": text(entry.get("ClientKey")),
        "client_name": text(entry.get("ClientName")),
        "task_key": first_present(entry.get("TaskTypeKey"), entry.get("TaskKey")),
        "role_name": text(entry.get("RoleName")),
        "task_type_name": text(entry.get("TaskTypeName")),
        "timesheet_status": first_present(parent.get("Status"), entry.get("Status")),
        "karbon_url": karbon_app_url("timesheets", parent_key),
        "karbon_created_at": parse_timestamp(parent.get("StartDate") or entry.get("CreatedDate")),
        "karbon_modified_at": parse_timestamp(
            entry.get("LastModifiedDateTime") or parent.get("LastModifiedDateTime")
        ),
        "last_synced_at": utcnow(),
    }


def map_timesheet_entries(timesheet: dict) -> list[dict]:
    """Flatten one timesheet into its time entries.

    A timesheet without a ``TimeEntries`` expansion is treated as a single
    entry so nothing fetched is silently dropped.
    """
    entries = [e for e in as_list(timesheet.get("TimeEntries")) if isinstance(e, dict)]
    if not entries:
        return [map_timesheet_entry(timesheet, None, 0)]
    return [map_timesheet_entry(entry, timesheet, idx) for idx, entry in enumerate(entries)]


def map_invoice(invoice: dict) -> dict:
    key = first_present(invoice.get("InvoiceKey"), invoice.get("InvoiceNumber"))
    total = as_float(invoice.get("TotalAmount") or invoice.get("Amount")) or 0.0
    paid = as_float(invoice.get("AmountPaid")) or 0.0
    amount_due = as_float(invoice.get("AmountDue"))
    return {
        "karbon_invoice_key": key,
        "invoice_number": text(invoice.get("InvoiceNumber")),
        "invoice_date": parse_date(invoice.get("InvoiceDate")),
        "due_date": parse_date(invoice.get("DueDate")),
        "status": text(invoice.get("Status")),
        "total_amount": total,
        "tax_amount": as_float(invoice.get("TaxAmount")) or 0.0,
        "subtotal": as_float(invoice.get("SubTotal") or invoice.get("Subtotal")) or 0.0,
        "amount_paid": paid,
        "amount_due": amount_due if amount_due else total - paid,
        "currency": text(invoice.get("Currency")) or "USD",
        "client_name": text(invoice.get("ClientName")),
        "client_key": text(invoice.get("ClientKey")),
        "karbon_work_item_key": text(invoice.get("WorkItemKey")),
        "work_item_title": text(invoice.get("WorkItemTitle")),
        "line_items": _json(invoice.get("LineItems")),
        "payment_date": parse_date(invoice.get("PaymentDate")),
        "payment_method": text(invoice.get("PaymentMethod")),
        "notes": text(invoice.get("Notes")),
        "karbon_url": karbon_app_url("invoices", text(invoice.get("InvoiceKey"))),
        "karbon_created_at": parse_timestamp(invoice.get("CreatedDate")),
        "karbon_modified_at": parse_timestamp(invoice.get("LastModifiedDateTime")),
        "last_synced_at": utcnow(),
    }


def map_note(note: dict) -> dict:
    key = text(note.get("NoteKey"))
    return {
        "karbon_note_key": key,
        "subject": text(note.get("Subject")),
        "body": text(note.get("Body")),
        "note_type": text(note.get("NoteType")),
        "is_pinned": bool(as_bool(note.get("IsPinned"))),
        "author_key": text(note.get("AuthorKey")),
        "author_name": first_present(note.get("AuthorName"), note.get("AuthorEmailAddress")),
        "assignee_email": text(note.get("AssigneeEmailAddress")),
        "due_date": parse_date(note.get("DueDate")),
        "todo_date": parse_date(note.get("TodoDate")),
        "timelines": _json(note.get("Timelines")),
        "comments": _json(note.get("Comments")),
        "karbon_work_item_key": text(note.get("WorkItemKey")),
        "work_item_title": text(note.get("WorkItemTitle")),
        "karbon_contact_key": text(note.get("ContactKey")),
        "contact_name": text(note.get("ContactName")),
        "karbon_url": karbon_app_url("notes", key),
        "karbon_created_at": parse_timestamp(note.get("CreatedDate")),
        "karbon_modified_at": parse_timestamp(note.get("LastModifiedDateTime")),
        "last_synced_at": utcnow(),
    }
