from urllib.parse import quote

from .grafanaclient import GrafanaClient, check_response, decode_json
from .exceptions import EmptyResultError, ResolveError, TransporterError
from .utils import positive_int

IMPORT_MESSAGE = "Imported by Dashboard Transporter"

# Keys that only make sense on the instance the dashboard was exported from
INSTANCE_SPECIFIC_KEYS = ("meta", "folderId", "folderUid", "folderTitle")

FOLDER_PAGE_LIMIT = 200
FOLDER_MAX_DEPTH = 10


def sanitize_dashboard_for_import(dashboard):
    """
    Prepares a dashboard definition to be created on another Grafana instance.

    The numeric ``id`` belongs to the source instance and could collide with an
    unrelated object on the target, so it is cleared; ``version`` is reset so the
    target does not reject the import as a stale update. ``uid`` is kept since it
    is the identity being transported. The dict is modified in place and returned.

    Parameters:
        dashboard (dict): The dashboard JSON model.

    Returns:
        dict: The same dict, sanitized.
    """
    dashboard["id"] = None
    dashboard["version"] = 0
    for key in INSTANCE_SPECIFIC_KEYS:
        dashboard.pop(key, None)
    return dashboard


class Dashboard:

    def __init__(self, api_client=None, debug=False):
        """
        Initializes the Dashboard class, managing API interactions for dashboards.

        If no Grafana client is provided, a new GrafanaClient is created from config.yaml.

        Parameters:
            api_client (GrafanaClient, optional): An existing GrafanaClient instance.
            debug (bool, optional): Enables debug logging if True. Default is False.
        """
        self.api_client = api_client if api_client else GrafanaClient(debug=debug)

        # Use the logger from the GrafanaClient instance
        self.logger = self.api_client.logger
        self.logger.debug("Dashboard class initialized.")

    def get_all_dashboards(self):
        """
        Retrieves every dashboard visible to the configured user.

        Folders and other non-dashboard hits are skipped. Entries without a type
        are kept, since older Grafana versions omit it.

        Returns:
            list: [{"id": int, "uid": str, "title": str}, ...]
        """
        self.logger.debug("Fetching all dashboards from /api/search")
        response = self.api_client.get("/api/search", params={"type": "dash-db"})
        check_response(response, context="list dashboards grafana api")

        dashboards = []
        for item in decode_json(response, "dashboard list", expected=list):
            if not isinstance(item, dict):
                continue
            item_type = item.get("type")
            if item_type and item_type != "dash-db":
                continue
            dashboards.append({"id": item.get("id"), "uid": item.get("uid"), "title": item.get("title")})

        self.logger.info(f"Successfully retrieved {len(dashboards)} dashboards.")
        return dashboards

    def get_dashboard_meta(self, uid):
        """
        Retrieves the full ``{meta, dashboard}`` envelope for a dashboard uid.

        Raises:
            ValueError: If uid is empty.
            UpstreamError: If Grafana answers with a non-success status.
            DecodeError: If the body is not a JSON object.
        """
        if not uid:
            raise ValueError("A dashboard uid is required.")

        endpoint = f"/api/dashboards/uid/{quote(uid, safe='')}"
        self.logger.debug(f"Fetching dashboard {uid} from: {endpoint}")

        response = self.api_client.get(endpoint)
        check_response(response)
        return decode_json(response, "dashboard")

    def get_dashboard_by_uid(self, uid):
        """
        Retrieves a dashboard definition and its title.

        Parameters:
            uid (str): The dashboard uid on this instance.

        Returns:
            tuple: (dashboard dict, title). The title is "" when absent.

        Raises:
            EmptyResultError: If the response carries no dashboard.
        """
        envelope = self.get_dashboard_meta(uid)
        dashboard = envelope.get("dashboard")
        if not isinstance(dashboard, dict):
            self.logger.warning(f"Grafana returned an empty dashboard for uid {uid}.")
            raise EmptyResultError("source returned empty dashboard")

        title = dashboard.get("title")
        if not isinstance(title, str):
            title = ""

        self.logger.info(f"Dashboard {uid} found, title: {title}")
        return dashboard, title

    def import_dashboard(self, dashboard, folder_uid=""):
        """
        Creates or overwrites a dashboard on this instance.

        The definition should already be sanitized. Overwrite is always requested
        so running the same migration twice updates the dashboard in place.

        Parameters:
            dashboard (dict): Sanitized dashboard JSON model.
            folder_uid (str, optional): Destination folder uid. Empty means General.

        Returns:
            dict: uid, id, status, slug and version from the response; any of
            them may be None depending on the Grafana version.

        Raises:
            UpstreamError: If the import is rejected.
        """
        payload = {
            "dashboard": dashboard,
            "overwrite": True,
            "message": IMPORT_MESSAGE,
        }
        if folder_uid:
            payload["folderUid"] = folder_uid

        self.logger.info(f"Importing dashboard, title: {dashboard.get('title')}, folder: {folder_uid or 'General'}")
        response = self.api_client.post("/api/dashboards/db", data=payload)
        check_response(response)

        outcome = {"uid": None, "id": None, "status": None, "slug": None, "version": None}
        try:
            body = response.json()
        except ValueError:
            self.logger.warning("Import response is not valid JSON. Assuming the import succeeded.")
            return outcome

        if isinstance(body, dict):
            for key in outcome:
                if body.get(key) not in (None, ""):
                    outcome[key] = body[key]

        self.logger.info(f"Import successful: {outcome['uid']} (status: {outcome['status']})")
        return outcome

    def search_dashboards(self, query):
        """
        Runs a dashboard-scoped text search.

        Grafana's search matches titles only; it cannot look a dashboard up by uid.
        """
        response = self.api_client.get("/api/search", params={"type": "dash-db", "query": query})
        check_response(response, context="search by title grafana api")
        return decode_json(response, "search by title", expected=list)

    def _id_from_meta(self, uid):
        envelope = self.get_dashboard_meta(uid)
        meta = envelope.get("meta")
        dashboard_id = meta.get("id") if isinstance(meta, dict) else None
        if positive_int(dashboard_id) is not None:
            return dashboard_id
        raise ResolveError(f"meta.id missing or zero for uid {uid}")

    def _id_from_search(self, uid, title):
        title = (title or "").strip()
        if not title:
            raise ResolveError("title empty, cannot search")

        for item in self.search_dashboards(title):
            if not isinstance(item, dict):
                continue
            item_id = item.get("id")
            if item.get("uid") == uid and positive_int(item_id) is not None:
                return item_id
        raise ResolveError(f"search by title '{title}' did not match uid {uid}")

    def resolve_dashboard_id(self, uid, import_id=None, title=""):
        """
        Determines the numeric dashboard id needed by the permissions API.

        Steps, each tried only when the previous one produced nothing:
          1. ``import_id`` returned by the import call, when positive.
          2. ``meta.id`` from GET /api/dashboards/uid/<uid>.
          3. A title search, keeping the entry whose uid matches.

        Parameters:
            uid (str): Dashboard uid on this instance.
            import_id (int, optional): The id returned by import, if any.
            title (str, optional): Dashboard title, used by the search step.

        Returns:
            dict: {
                "success": bool,
                "dashboard_id": int or None,
                "source": "import" | "meta" | "search" | None,
                "attempts": [{"step": str, "error": str}, ...],
                "error": str or None,
            }
        """
        result = {"success": False, "dashboard_id": None, "source": None, "attempts": [], "error": None}

        if positive_int(import_id) is not None:
            self.logger.debug(f"Using dashboard id {import_id} returned by import for uid {uid}.")
            result.update(success=True, dashboard_id=import_id, source="import")
            return result
        result["attempts"].append({"step": "import", "error": "import response carried no id"})

        steps = (
            ("meta", lambda: self._id_from_meta(uid)),
            ("search", lambda: self._id_from_search(uid, title)),
        )
        for step, resolve in steps:
            try:
                dashboard_id = resolve()
            except TransporterError as e:
                self.logger.debug(f"Dashboard id step '{step}' failed for uid {uid}: {e}")
                result["attempts"].append({"step": step, "error": str(e)})
                continue

            self.logger.info(f"Resolved dashboard uid {uid} to id {dashboard_id} via {step}.")
            result.update(success=True, dashboard_id=dashboard_id, source=step)
            return result

        result["error"] = str(ResolveError(
            "dash id not found ("
            + "; ".join(f"{a['step']}: {a['error']}" for a in result["attempts"])
            + ")"
        ))
        self.logger.warning(f"Could not resolve dashboard id for uid {uid}: {result['error']}")
        return result

    def _list_folders_page(self, parent_uid, page, limit):
        params = {"page": page, "limit": limit}
        if parent_uid.strip():
            params["parentUid"] = parent_uid
        response = self.api_client.get("/api/folders", params=params)
        check_response(response, context="list folders grafana api")
        return decode_json(response, "folder list", expected=list)

    def get_folders_flat(self):
        """
        Lists every folder as a flat list of full paths.

        Nested folders are walked page by page, depth first. The General folder
        (uid "") is always first; the rest is sorted by path, case-insensitively.

        Returns:
            list: [{"uid": "", "title": "General"}, {"uid": "a", "title": "Team A/Project X"}, ...]
        """
        folders = []
        visited = set()

        def walk(parent_uid, parent_path, depth):
            if depth > FOLDER_MAX_DEPTH:
                return
            page = 1
            while True:
                items = self._list_folders_page(parent_uid, page, FOLDER_PAGE_LIMIT)
                if not items:
                    return
                for folder in items:
                    if not isinstance(folder, dict):
                        continue
                    folder_uid = folder.get("uid") or ""
                    if not folder_uid or folder_uid in visited:
                        continue
                    visited.add(folder_uid)

                    title = folder.get("title") or ""
                    full_path = f"{parent_path}/{title}" if parent_path else title
                    folders.append({"uid": folder_uid, "title": full_path})
                    walk(folder_uid, full_path, depth + 1)

                # A short page is the last one
                if len(items) < FOLDER_PAGE_LIMIT:
                    return
                page += 1

        walk("", "", 0)
        folders.sort(key=lambda f: f["title"].lower())
        self.logger.info(f"Retrieved {len(folders)} folders.")
        return [{"uid": "", "title": "General"}] + folders
