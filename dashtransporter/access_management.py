from .grafanaclient import GrafanaClient, check_response, decode_json
from .exceptions import DecodeError, GranteeLookupError, TransporterError
from .utils import positive_int

PERMISSION_VIEW = 1
PERMISSION_EDIT = 2
PERMISSION_ADMIN = 4


def build_permission_items(existing, user_ids, permission):
    """
    Computes the replacement ACL for a dashboard.

    Existing grants are carried over unchanged, except grants for one of
    ``user_ids``, which are rewritten to ``permission``. A targeted user appears
    exactly once even if the current list repeats them. Targeted users without a
    grant are appended in the order given. Entries that name no user, team or
    role are dropped.

    Parameters:
        existing (list): Current ACL entries as returned by Grafana.
        user_ids (list): Numeric ids of the users to grant.
        permission (int): Permission level for those users.

    Returns:
        list: Items for POST /api/dashboards/id/<id>/permissions.
    """
    targets = set(user_ids)
    emitted = set()
    items = []

    for entry in existing:
        if not isinstance(entry, dict):
            continue
        user_id = positive_int(entry.get("userId"))
        team_id = positive_int(entry.get("teamId"))
        role = entry.get("role") or ""

        if user_id is not None:
            if user_id in targets:
                if user_id not in emitted:
                    items.append({"userId": user_id, "permission": permission})
                    emitted.add(user_id)
                continue
            items.append({"userId": user_id, "permission": entry.get("permission")})
        elif team_id is not None:
            items.append({"teamId": team_id, "permission": entry.get("permission")})
        elif role:
            items.append({"role": role, "permission": entry.get("permission")})

    for user_id in user_ids:
        if user_id not in emitted:
            items.append({"userId": user_id, "permission": permission})
            emitted.add(user_id)

    return items


class AccessManagement:

    def __init__(self, api_client=None, debug=False):
        """
        Initializes the AccessManagement class for user lookups and dashboard ACLs.

        Parameters:
            api_client (GrafanaClient, optional): An existing GrafanaClient instance.
                If None, a new GrafanaClient is created from config.yaml.
            debug (bool, optional): Enables debug logging if True. Default is False.
        """
        self.api_client = api_client if api_client else GrafanaClient(debug=debug)
        self.logger = self.api_client.logger
        self.logger.debug("AccessManagement class initialized.")

    def get_user(self, login_or_email):
        """
        Looks a user up by login or email.

        The value is sent as given; Grafana matches it case-insensitively.

        Parameters:
            login_or_email (str): The user's login or email address.

        Returns:
            dict: id, email, login and name of the user.

        Raises:
            GranteeLookupError: If the user does not exist or the lookup fails.
        """
        self.logger.debug(f"Looking up user: {login_or_email}")
        try:
            response = self.api_client.get("/api/users/lookup", params={"loginOrEmail": login_or_email})
            check_response(response, context="lookup grafana api")
            user = decode_json(response, "lookup")
        except TransporterError as e:
            raise GranteeLookupError(login_or_email, str(e)) from e

        if positive_int(user.get("id")) is None:
            raise GranteeLookupError(login_or_email, "lookup returned userId=0")

        self.logger.debug(f"Found user {login_or_email} with id {user['id']}.")
        return {
            "id": user["id"],
            "email": user.get("email", ""),
            "login": user.get("login", ""),
            "name": user.get("name", ""),
        }

    def get_dashboard_permissions(self, dashboard_id):
        """
        Retrieves the current ACL of a dashboard.

        Accepts both the ``{"dashboardId", "permissions": [...]}`` envelope and a
        bare list, since Grafana versions differ.

        Raises:
            UpstreamError: If the read is rejected.
            DecodeError: If the body has neither shape.
        """
        response = self.api_client.get(f"/api/dashboards/id/{dashboard_id}/permissions")
        check_response(response, context="get perms grafana api")
        try:
            body = response.json()
        except ValueError as e:
            raise DecodeError(f"decode perms: {e}") from e

        if isinstance(body, list):
            return body
        if isinstance(body, dict):
            permissions = body.get("permissions") or []
            if isinstance(permissions, list):
                return permissions
        raise DecodeError(f"decode perms: unexpected body {type(body).__name__}")

    def set_dashboard_permissions(self, dashboard_id, items):
        """
        Replaces the whole ACL of a dashboard.

        Grafana's endpoint has replace semantics: anything not in ``items`` is removed.
        """
        self.logger.debug(f"Writing {len(items)} permission items to dashboard {dashboard_id}: {items}")
        response = self.api_client.post(f"/api/dashboards/id/{dashboard_id}/permissions", data={"items": items})
        check_response(response, context="post perms grafana api")
        return response

    def reconcile_dashboard_permissions(self, dashboard_id, grantees, permission=PERMISSION_EDIT):
        """
        Grants ``permission`` on a dashboard to every grantee without touching other grants.

        Each grantee is looked up independently; a failed lookup is recorded and the
        rest are still processed. The current ACL is read, merged with
        build_permission_items and written back in one call.

        Parameters:
            dashboard_id (int): Numeric dashboard id on this instance.
            grantees (list): Logins or emails to grant.
            permission (int, optional): Permission level. Defaults to edit (2).

        Returns:
            dict: {
                "success": bool,           # True when the ACL was written
                "status": "ok" | "warning" | "error",
                "user_ids": [int, ...],    # resolved grantees
                "failures": [str, ...],    # lookup failures
                "items": [dict, ...],      # ACL written, if any
                "message": str or None,
            }
        """
        result = {
            "success": False,
            "status": "ok",
            "user_ids": [],
            "failures": [],
            "items": [],
            "message": None,
        }

        # Step 1: Resolve grantees to user ids
        for grantee in grantees:
            try:
                user = self.get_user(grantee)
            except GranteeLookupError as e:
                self.logger.warning(f"Could not resolve grantee {e}")
                result["failures"].append(str(e))
                continue
            if user["id"] not in result["user_ids"]:
                result["user_ids"].append(user["id"])

        if not result["user_ids"]:
            result["status"] = "warning"
            if result["failures"]:
                result["message"] = "no grantee resolved: " + "; ".join(result["failures"])
            else:
                result["message"] = "no grantees given"
            self.logger.warning(f"Skipping permissions for dashboard {dashboard_id}: {result['message']}")
            return result

        # Step 2: Read, merge and write back the full ACL
        try:
            existing = self.get_dashboard_permissions(dashboard_id)
            self.logger.debug(f"Existing permissions for dashboard {dashboard_id}: {existing}")
            items = build_permission_items(existing, result["user_ids"], permission)
            self.set_dashboard_permissions(dashboard_id, items)
        except TransporterError as e:
            self.logger.error(f"Failed to update permissions for dashboard {dashboard_id}: {e}")
            result["status"] = "error"
            result["message"] = str(e)
            return result

        result["success"] = True
        result["items"] = items

        if result["failures"]:
            result["status"] = "warning"
            result["message"] = "lookup failed: " + "; ".join(result["failures"])
            self.logger.warning(
                f"Permissions written for dashboard {dashboard_id} but some grantees were skipped: "
                f"{result['message']}"
            )
        else:
            self.logger.info(
                f"Granted permission {permission} on dashboard {dashboard_id} to users {result['user_ids']}."
            )
        return result
