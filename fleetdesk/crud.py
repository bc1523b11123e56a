# fleetdesk/crud.py
from __future__ import annotations

from typing import Any, Callable, Mapping

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user

from .forms import initial_values, validate
from .listing import ListState
from .models import index_by_id, parse_ref, resolve_ref
from .resources import Resource
from .services import ApiError, Conflict, NotFound, ValidationFailed, api_client

ACTIVE_FILTERS = ("all", "active", "inactive")


# =========================================================
# Helpers
# =========================================================
def _clean_str(value: str | None) -> str:
    return (value or "").strip()


def _principal():
    return current_user if getattr(current_user, "is_authenticated", False) else None


def load_lookups(resource: Resource, client, names=None) -> dict[str, dict[str, Mapping]]:
    """
    id -> record maps for ref fields/columns.

    A failing lookup degrades to an empty map (refs show '-') and is logged;
    it never blocks the page that needed it.
    """
    out: dict[str, dict[str, Mapping]] = {}
    for lk in resource.lookups:
        if names is not None and lk.name not in names:
            continue
        try:
            out[lk.name] = index_by_id(lk.loader(client, _principal()))
        except ApiError as exc:
            current_app.logger.warning("Lookup %s for %s failed: %s", lk.name, resource.key, exc)
            out[lk.name] = {}
    return out


def ref_label(resource: Resource, lookups, name: str, value: Any) -> str:
    lk = resource.lookup(name)
    keys = lk.label_keys if lk else ("name",)
    return resolve_ref(parse_ref(value), lookups.get(name), *keys, default="-")


def search_items(items, keys, needle: str):
    needle = needle.lower()
    if not needle:
        return items
    return [
        item for item in items
        if any(needle in str(item.get(k) or "").lower() for k in keys)
    ]


def filter_active(resource: Resource, items, status: str):
    if status == "active":
        return [i for i in items if resource.active.is_active(i)]
    if status == "inactive":
        return [i for i in items if not resource.active.is_active(i)]
    return items


def delete_error_message(resource: Resource, exc: ApiError) -> str:
    fallback = f"Failed to delete {resource.singular.lower()}. Please try again."
    if isinstance(exc, Conflict):
        return exc.user_message(
            resource.delete_conflict
            or f"This {resource.singular.lower()} is still referenced by other records."
        )
    return exc.user_message(fallback)


# =========================================================
# View factory
# =========================================================
def register_crud(bp: Blueprint, resource: Resource, guard: Callable) -> None:
    """
    Adds <endpoint>_list / _detail / _new / _edit / _confirm_delete /
    _delete / _toggle to `bp` for one resource.
    """
    ep = resource.endpoint
    base = f"/{resource.key}"
    ref_names = [f.name for f in resource.fields if f.kind == "ref"]

    def list_url(**kwargs) -> str:
        return url_for(f"{bp.name}.{ep}_list", **kwargs)

    def render_form(values: dict, errors: dict, item_id: str | None, lookups) -> str:
        return render_template(
            "crud/form.html",
            resource=resource,
            values=values,
            errors=errors,
            item_id=item_id,
            editing=item_id is not None,
            lookups=lookups,
            ref_label=lambda name, value: ref_label(resource, lookups, name, value),
            list_url=list_url(),
        )

    # ----------------------
    # List
    # ----------------------
    @bp.route(base, methods=["GET"], endpoint=f"{ep}_list")
    @guard
    def list_view():
        q = _clean_str(request.args.get("q"))
        status = _clean_str(request.args.get("status")).lower() or "all"
        if status not in ACTIVE_FILTERS:
            status = "all"
        page_no = request.args.get("page", 1, type=int) or 1

        client = api_client()
        state = ListState()
        state.begin()
        page = None
        try:
            page = resource.service(client).list_page({"page": max(page_no, 1), "limit": resource.page_size})
            state.resolve(page.items)
        except ApiError as exc:
            current_app.logger.warning("Listing %s failed: %s", resource.key, exc)
            state.fail(exc.user_message(f"Failed to load {resource.plural.lower()}."))

        lookups = load_lookups(resource, client, {c.ref for c in resource.columns if c.ref}) if page else {}
        items = filter_active(resource, search_items(state.items, resource.search_keys, q), status)

        return render_template(
            "crud/list.html",
            resource=resource,
            items=items,
            state=state,
            page=page,
            q=q,
            status=status,
            active_filters=ACTIVE_FILTERS,
            ref_label=lambda name, value: ref_label(resource, lookups, name, value),
            endpoint_prefix=f"{bp.name}.{ep}",
        )

    # ----------------------
    # Detail
    # ----------------------
    @bp.route(f"{base}/<item_id>", methods=["GET"], endpoint=f"{ep}_detail")
    @guard
    def detail_view(item_id: str):
        client = api_client()
        try:
            item = resource.service(client).get(item_id)
        except NotFound:
            abort(404)
        except ApiError as exc:
            flash(exc.user_message(f"Failed to load {resource.singular.lower()}."), "danger")
            return redirect(list_url())
        if not item:
            abort(404)

        lookups = load_lookups(resource, client, set(ref_names))
        return render_template(
            "crud/detail.html",
            resource=resource,
            item=item,
            item_id=item_id,
            ref_label=lambda name, value: ref_label(resource, lookups, name, value),
            endpoint_prefix=f"{bp.name}.{ep}",
        )

    # ----------------------
    # Create
    # ----------------------
    @bp.route(f"{base}/new", methods=["GET", "POST"], endpoint=f"{ep}_new")
    @guard
    def new_view():
        client = api_client()
        lookups = load_lookups(resource, client, set(ref_names))

        if request.method == "GET":
            values = initial_values(resource.fields, {resource.active.field: resource.active.on})
            return render_form(values, {}, None, lookups)

        values = request.form.to_dict()
        data, errors = validate(resource.fields, request.form)
        if not errors and resource.extra_checks:
            errors = resource.extra_checks(data, False)
        if errors:
            flash("Please fix the highlighted fields.", "danger")
            return render_form(values, errors, None, lookups)

        try:
            resource.service(client).create(data)
        except ValidationFailed as exc:
            flash(exc.user_message(f"Failed to create {resource.singular.lower()}."), "danger")
            return render_form(values, exc.field_errors, None, lookups)
        except ApiError as exc:
            current_app.logger.warning("Create %s failed: %s", resource.key, exc)
            flash(exc.user_message(f"Failed to create {resource.singular.lower()}."), "danger")
            return render_form(values, {}, None, lookups)

        flash(f"{resource.singular} created successfully.", "success")
        return redirect(list_url())

    # ----------------------
    # Update
    # ----------------------
    @bp.route(f"{base}/<item_id>/edit", methods=["GET", "POST"], endpoint=f"{ep}_edit")
    @guard
    def edit_view(item_id: str):
        client = api_client()
        service = resource.service(client)
        try:
            item = service.get(item_id)
        except NotFound:
            abort(404)
        except ApiError as exc:
            flash(exc.user_message(f"Failed to load {resource.singular.lower()}."), "danger")
            return redirect(list_url())

        lookups = load_lookups(resource, client, set(ref_names))
        current = initial_values(resource.fields, item)

        if request.method == "GET":
            return render_form(current, {}, item_id, lookups)

        # Immutable fields are rendered disabled; keep their stored values on re-render
        values = {**current, **request.form.to_dict()}
        for f in resource.fields:
            if f.immutable:
                values[f.name] = current.get(f.name)
        data, errors = validate(resource.fields, request.form, editing=True)
        if not errors and resource.extra_checks:
            errors = resource.extra_checks(data, True)
        if errors:
            flash("Please fix the highlighted fields.", "danger")
            return render_form(values, errors, item_id, lookups)

        try:
            service.update(item_id, data)
        except ValidationFailed as exc:
            flash(exc.user_message(f"Failed to update {resource.singular.lower()}."), "danger")
            return render_form(values, exc.field_errors, item_id, lookups)
        except ApiError as exc:
            current_app.logger.warning("Update %s %s failed: %s", resource.key, item_id, exc)
            flash(exc.user_message(f"Failed to update {resource.singular.lower()}."), "danger")
            return render_form(values, {}, item_id, lookups)

        flash(f"{resource.singular} updated successfully.", "success")
        return redirect(list_url())

    # ----------------------
    # Delete (confirmation gated)
    # ----------------------
    @bp.route(f"{base}/<item_id>/delete", methods=["GET"], endpoint=f"{ep}_confirm_delete")
    @guard
    def confirm_delete_view(item_id: str):
        try:
            item = resource.service(api_client()).get(item_id)
        except NotFound:
            abort(404)
        except ApiError as exc:
            flash(exc.user_message(f"Failed to load {resource.singular.lower()}."), "danger")
            return redirect(list_url())

        return render_template(
            "confirm.html",
            title=f"Delete {resource.singular}",
            message=(
                f"Are you sure you want to delete {resource.singular.lower()} "
                f"'{resource.title_of(item)}'? This cannot be undone."
            ),
            action=url_for(f"{bp.name}.{ep}_delete", item_id=item_id),
            confirm_label="Delete",
            confirm_class="danger",
            cancel_url=list_url(),
        )

    @bp.route(f"{base}/<item_id>/delete", methods=["POST"], endpoint=f"{ep}_delete")
    @guard
    def delete_view(item_id: str):
        try:
            resource.service(api_client()).delete(item_id)
        except ApiError as exc:
            current_app.logger.warning("Delete %s %s failed: %s", resource.key, item_id, exc)
            flash(delete_error_message(resource, exc), "danger")
            return redirect(list_url())

        flash(f"{resource.singular} deleted.", "success")
        return redirect(list_url())

    # ----------------------
    # Active toggle
    # ----------------------
    @bp.route(f"{base}/<item_id>/toggle", methods=["POST"], endpoint=f"{ep}_toggle")
    @guard
    def toggle_view(item_id: str):
        flag = resource.active
        # The list posts the value it displayed; the toggle flips exactly that
        displayed = {flag.field: request.form.get("current", flag.on)}
        new_value = flag.toggled(displayed)

        try:
            resource.service(api_client()).set_active(item_id, flag.field, new_value)
        except ApiError as exc:
            current_app.logger.warning("Toggle %s %s failed: %s", resource.key, item_id, exc)
            flash(exc.user_message(f"Failed to update {resource.singular.lower()} status."), "danger")
            return redirect(list_url())

        verb = "activated" if new_value == flag.on else "deactivated"
        flash(f"{resource.singular} {verb}.", "success")
        return redirect(list_url())
