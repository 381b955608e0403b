import json

from .grafanaclient import GrafanaClient
from .dashboard import Dashboard, sanitize_dashboard_for_import
from .access_management import AccessManagement, PERMISSION_EDIT
from .exceptions import TransporterError
from .utils import export_to_csv, parse_requesters

STATUS_OK = "ok"
STATUS_WARNING = "warning"
STATUS_ERROR = "error"


def parse_batch_request(payload):
    """
    Validates a batch migration request before any dashboard is touched.

    Parameters:
        payload (dict or str): The request, either decoded or as a JSON string, with
            keys sourceEnv, targetEnv, folderUid, requestedBy and uids.

    Returns:
        dict: The normalized request.

    Raises:
        ValueError: If the body is not valid JSON, an environment is missing,
            uids is empty, or folderUid or requestedBy is not a string.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise ValueError(f"invalid json body: {e}") from e

    if not isinstance(payload, dict):
        raise ValueError("invalid json body: expected an object")

    source_env = str(payload.get("sourceEnv") or "").strip()
    target_env = str(payload.get("targetEnv") or "").strip()
    if not source_env or not target_env:
        raise ValueError("sourceEnv and targetEnv are required")

    uids = payload.get("uids")
    if not isinstance(uids, list) or not uids:
        raise ValueError("uids is required")
    if not all(isinstance(uid, str) for uid in uids):
        raise ValueError("uids must be a list of strings")

    for key in ("folderUid", "requestedBy"):
        value = payload.get(key)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{key} must be a string")

    return {
        "sourceEnv": source_env,
        "targetEnv": target_env,
        "folderUid": payload.get("folderUid") or "",
        "requestedBy": payload.get("requestedBy") or "",
        "uids": list(uids),
    }


class Migration:

    def __init__(self, source_yaml=None, target_yaml=None, debug=False, *, source_client=None, target_client=None):
        """
        Initializes the Migration class with API clients for the source and target environments.

        Parameters:
            source_yaml (str, optional): Path to the YAML file for the source environment.
            target_yaml (str, optional): Path to the YAML file for the target environment.
            debug (bool, optional): Enables debug logging if True. Default is False.
            source_client (GrafanaClient, optional): Existing client for the source; wins over source_yaml.
            target_client (GrafanaClient, optional): Existing client for the target; wins over target_yaml.
        """
        self.source_client = source_client or GrafanaClient(config_file=source_yaml, debug=debug)
        self.target_client = target_client or GrafanaClient(config_file=target_yaml, debug=debug)

        # Use the logger from the source client for consistency
        self.logger = self.source_client.logger

        self.source_dashboard = Dashboard(api_client=self.source_client, debug=debug)
        self.target_dashboard = Dashboard(api_client=self.target_client, debug=debug)
        self.target_access = AccessManagement(api_client=self.target_client, debug=debug)

    def migrate_dashboard(self, uid, folder_uid="", requesters=None, permission=PERMISSION_EDIT):
        """
        Runs the full pipeline for one dashboard and reports its outcome.

        Source fetch or target import failures mark the item as an error. Once the
        import succeeded, problems granting permissions only downgrade it to a
        warning; the import is never rolled back.

        Parameters:
            uid (str): Dashboard uid on the source.
            folder_uid (str, optional): Destination folder uid on the target.
            requesters (list, optional): Logins/emails to grant access to.
            permission (int, optional): Permission level for the requesters.

        Returns:
            dict: {"sourceUid", "targetUid"?, "status", "message"?}
        """
        result = {"sourceUid": uid}

        # Step 1: Fetch from source
        try:
            dashboard, title = self.source_dashboard.get_dashboard_by_uid(uid)
        except (TransporterError, ValueError) as e:
            return self._finish(result, STATUS_ERROR, f"source get failed: {e}")

        # Step 2: Sanitize and import into target
        try:
            sanitize_dashboard_for_import(dashboard)
            outcome = self.target_dashboard.import_dashboard(dashboard, folder_uid)
        except TransporterError as e:
            return self._finish(result, STATUS_ERROR, f"target import failed: {e}")

        target_uid = outcome.get("uid") or uid
        result["targetUid"] = target_uid

        # Step 3: Access control for the requesters
        if not requesters:
            return self._finish(result, STATUS_WARNING, "import ok; rbac skipped")

        resolved = self.target_dashboard.resolve_dashboard_id(target_uid, outcome.get("id"), title)
        if not resolved["success"]:
            return self._finish(result, STATUS_WARNING, f"import ok; rbac failed: {resolved['error']}")

        reconciled = self.target_access.reconcile_dashboard_permissions(
            resolved["dashboard_id"], requesters, permission
        )
        if reconciled["status"] != STATUS_OK:
            return self._finish(result, STATUS_WARNING, f"import ok; rbac failed: {reconciled['message']}")

        return self._finish(result, STATUS_OK)

    def _finish(self, result, status, message=None):
        result["status"] = status
        if message:
            result["message"] = message

        log = {STATUS_OK: self.logger.info, STATUS_WARNING: self.logger.warning}.get(status, self.logger.error)
        log(f"Dashboard {result['sourceUid']}: {status}" + (f" - {message}" if message else ""))
        return result

    def migrate_dashboards(self, uids, folder_uid="", requested_by="", permission=PERMISSION_EDIT):
        """
        Migrates dashboards one after the other, isolating failures per dashboard.

        Parameters:
            uids (list): Source dashboard uids, in the order results should be returned.
            folder_uid (str, optional): Destination folder uid on the target. "" is General.
            requested_by (str, optional): Free-form list of logins/emails to grant access to.
            permission (int, optional): Permission level for the requesters. Defaults to edit (2).

        Returns:
            list: One result dict per uid, in input order.
        """
        if not uids:
            raise ValueError("At least one dashboard uid must be provided.")

        requesters = parse_requesters(requested_by)
        self.logger.info(
            f"Starting migration of {len(uids)} dashboards to folder '{folder_uid or 'General'}' "
            f"for requesters {requesters}."
        )

        results = []
        for uid in uids:
            try:
                result = self.migrate_dashboard(uid, folder_uid, requesters, permission)
            except Exception as e:
                self.logger.exception(f"Unexpected error while migrating dashboard {uid}: {e}")
                result = {"sourceUid": uid, "status": STATUS_ERROR, "message": f"unexpected error: {e}"}
            results.append(result)

        counts = {status: sum(1 for r in results if r["status"] == status)
                  for status in (STATUS_OK, STATUS_WARNING, STATUS_ERROR)}
        self.logger.info(
            f"Finished dashboard migration. OK: {counts[STATUS_OK]}, "
            f"Warnings: {counts[STATUS_WARNING]}, Errors: {counts[STATUS_ERROR]}."
        )
        return results

    def export_results(self, results, file_name="migration_results.csv"):
        """Writes batch results to a CSV file."""
        return export_to_csv(results, file_name=file_name, logger=self.logger)


def run_batch(payload, registry, org_id=None, permission=PERMISSION_EDIT, debug=False):
    """
    Validates a batch request, connects to both environments and migrates the dashboards.

    Parameters:
        payload (dict or str): {sourceEnv, targetEnv, folderUid, requestedBy, uids}.
        registry (EnvironmentRegistry): Configured environments.
        org_id (str, optional): Grafana organization sent with every call. Defaults to "1".
        permission (int, optional): Permission level for the requesters.
        debug (bool, optional): Enables debug logging.

    Returns:
        list: [{sourceUid, targetUid?, status, message?}, ...] in uid order.

    Raises:
        ValueError: If the request is malformed or names an unknown environment.
    """
    request = parse_batch_request(payload)

    source_env = registry.get_environment(request["sourceEnv"])
    target_env = registry.get_environment(request["targetEnv"])
    if source_env is None or target_env is None:
        raise ValueError("unknown sourceEnv or targetEnv")

    migration = Migration(
        debug=debug,
        source_client=GrafanaClient.from_environment(source_env, org_id=org_id, debug=debug),
        target_client=GrafanaClient.from_environment(target_env, org_id=org_id, debug=debug),
    )
    return migration.migrate_dashboards(
        request["uids"],
        folder_uid=request["folderUid"],
        requested_by=request["requestedBy"],
        permission=permission,
    )
