import os
import logging
from typing import Optional

import requests
import urllib3
import yaml

from .config import Environment
from .exceptions import DecodeError, TransportError, UpstreamError

DEFAULT_ORG_ID = "1"
DEFAULT_TIMEOUT = 30


class GrafanaClient:
    def __init__(
        self,
        config_file: Optional[str] = "config.yaml",
        debug: bool = False,
        *,
        url: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        org_id: Optional[str] = None,
        verify_ssl: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initializes the GrafanaClient with configuration, logging, and
        basic-auth credentials.

        Two supported patterns:

        1) YAML-based usage:
            client = GrafanaClient(config_file="config.yaml", debug=False)

           The YAML must contain:
             - url: "https://grafana-dev.example.com"
             - user: "admin"
             - password: "secret"
             - org_id: "1"         # optional, defaults to "1"
             - verify_ssl: true    # optional, defaults to True
             - timeout: 30         # optional, seconds per request

        2) Direct connection (no YAML):
            client = GrafanaClient(
                url="https://grafana-dev.example.com",
                user="admin",
                password="secret",
                debug=True,
            )

        Rules:
        - If url, user or password is provided, all three are required and
          config_file is ignored.
        - Otherwise, config_file is required.

        Parameters:
            config_file (str): Path to the YAML configuration file.
            debug (bool): Flag to enable debug-level logging.
            url (str | None): Grafana base URL.
            user (str | None): Basic-auth user.
            password (str | None): Basic-auth password.
            org_id (str | None): Value sent in the X-Grafana-Org-Id header.
            verify_ssl (bool | None): Whether to verify TLS certificates.
            timeout (float | None): Per-request timeout in seconds.
        """
        if url is not None or user is not None or password is not None:
            if not url or not user or not password:
                raise ValueError(
                    "When using direct connection, 'url', 'user' and 'password' "
                    "must all be provided."
                )
            self.config = {"url": url, "user": user, "password": password}
        else:
            if not config_file:
                raise ValueError(
                    "config_file must be provided when 'url', 'user' and 'password' "
                    "are not supplied."
                )
            self.config = self._load_config(config_file)

        # Keyword arguments win over values from the YAML file
        if org_id is not None:
            self.config["org_id"] = org_id
        if verify_ssl is not None:
            self.config["verify_ssl"] = verify_ssl
        if timeout is not None:
            self.config["timeout"] = timeout

        self.base_url = str(self.config["url"]).strip().rstrip("/")
        self.user = self.config["user"]
        self.password = self.config["password"]
        self.org_id = str(self.config.get("org_id") or DEFAULT_ORG_ID)
        self.timeout = self.config.get("timeout") or DEFAULT_TIMEOUT
        self.auth = (self.user, self.password)

        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Grafana-Org-Id": self.org_id,
        }

        # Logging setup
        log_dir = "logs"
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)

        log_level = logging.DEBUG if debug else logging.INFO
        log_file_path = os.path.join(log_dir, "dashtransporter.log")

        self.logger = self._get_logger("GrafanaClient", log_file_path, log_level)

        self.verify = bool(self.config.get("verify_ssl", True))
        if not self.verify:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            self.logger.warning(
                f"SSL verification is disabled for {self.base_url}. Avoid using this in production."
            )

    @classmethod
    def from_environment(
        cls,
        environment: Environment,
        org_id: Optional[str] = None,
        debug: bool = False,
        timeout: Optional[float] = None,
    ) -> "GrafanaClient":
        """
        Builds a client for one configured environment.

        Example:
            env = registry.get_environment("dev")
            client = GrafanaClient.from_environment(env, org_id="1")

        Raises:
            ValueError: If the environment lacks its URL, user or password.
        """
        environment.validate()
        return cls(
            config_file=None,
            debug=debug,
            url=environment.url,
            user=environment.user,
            password=environment.password,
            org_id=org_id,
            timeout=timeout,
        )

    def _load_config(self, config_file):
        """
        Loads the configuration file in YAML format.

        Parameters:
            config_file (str): Path to the YAML configuration file.

        Returns:
            dict: Parsed YAML configuration as a dictionary.
        """
        with open(config_file, "r") as stream:
            return yaml.load(stream, Loader=yaml.FullLoader)

    def _get_logger(self, name, log_filename, log_level):
        """
        Sets up and configures a logger for the GrafanaClient.

        Parameters:
            name (str): Name of the logger.
            log_filename (str): File path where logs will be saved.
            log_level (int): Logging level (DEBUG, INFO, etc.)

        Returns:
            logging.Logger: Configured logger instance.
        """
        logger = logging.getLogger(name)

        # Avoid stacking handlers when several clients are created
        if not logger.handlers:
            handler = logging.FileHandler(log_filename, mode="a")
            formatter = logging.Formatter(
                "%(asctime)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        logger.setLevel(log_level)

        return logger

    def get(self, endpoint, params=None):
        """
        Performs a GET request to the specified API endpoint.

        Parameters:
            endpoint (str): API endpoint (relative to the base URL).
            params (dict): Optional query parameters.

        Returns:
            requests.Response: The HTTP response object, whatever its status.
        """
        return self._make_request("GET", endpoint, params=params)

    def post(self, endpoint, data=None):
        """
        Performs a POST request to the specified API endpoint.

        Parameters:
            endpoint (str): API endpoint (relative to the base URL).
            data (dict): Optional JSON data payload for the POST request.

        Returns:
            requests.Response: The HTTP response object, whatever its status.
        """
        return self._make_request("POST", endpoint, data=data)

    def _make_request(self, method, endpoint, params=None, data=None):
        """
        Makes an HTTP request to the Grafana API.

        Parameters:
            method (str): The HTTP method ('GET' or 'POST').
            endpoint (str): The API endpoint (relative to the base URL).
            params (dict): Optional query parameters.
            data (dict): Optional JSON data payload.

        Returns:
            requests.Response: The full response object. Non-success statuses
            are logged but returned so callers can inspect the body.

        Raises:
            UpstreamError: If the request timed out.
            TransportError: If the request could not be sent or answered.
        """
        url = f"{self.base_url}{endpoint}"

        self.logger.debug(
            f"Making {method} request to {url} with data: {data} and params: {params}"
        )

        try:
            if method == "GET":
                response = requests.get(
                    url, headers=self.headers, params=params, auth=self.auth,
                    verify=self.verify, timeout=self.timeout
                )
            elif method == "POST":
                response = requests.post(
                    url, headers=self.headers, json=data, auth=self.auth,
                    verify=self.verify, timeout=self.timeout
                )
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except requests.exceptions.Timeout as e:
            self.logger.error(f"{method} request to {url} timed out after {self.timeout}s: {e}")
            raise UpstreamError(None, f"request timed out after {self.timeout}s", context=f"{method} {endpoint}")
        except requests.exceptions.RequestException as e:
            error_message = f"{method} request to {url} failed: {e}"
            self.logger.error(error_message)
            raise TransportError(error_message) from e

        if 200 <= response.status_code < 300:
            self.logger.debug(
                f"{method} request to {url} succeeded with status code {response.status_code}"
            )
        else:
            self.logger.error(
                f"{method} request to {url} failed with status code "
                f"{response.status_code}: {response.text}"
            )

        return response


def check_response(response, context="grafana api"):
    """
    Raises UpstreamError unless the response carries a 2xx status.

    Parameters:
        response (requests.Response): The response to check.
        context (str): Prefix for the error message, e.g. "get perms grafana api".
    """
    if not 200 <= response.status_code < 300:
        raise UpstreamError(response.status_code, response.text, context=context)
    return response


def decode_json(response, context, expected=dict):
    """
    Decodes a JSON body and checks its top-level type.

    Raises:
        DecodeError: If the body is not JSON or is not an instance of ``expected``.
    """
    try:
        payload = response.json()
    except ValueError as e:
        raise DecodeError(f"decode {context}: {e}") from e
    if not isinstance(payload, expected):
        raise DecodeError(
            f"decode {context}: expected {expected.__name__}, got {type(payload).__name__}"
        )
    return payload
