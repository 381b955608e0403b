import json
from typing import Any, Dict, List, Optional, Tuple, Union


class FakeLogger:
    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    def _log(self, level: str, msg: str, **extra: Any) -> None:
        entry: Dict[str, Any] = {"level": level, "msg": msg}
        if extra:
            entry["extra"] = extra
        self.messages.append(entry)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("debug", msg, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("info", msg, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("warning", msg, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("error", msg, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("exception", msg, **kwargs)


class FakeResponse:
    def __init__(self, status_code: int, json_data: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._json_data = json_data
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text

    def json(self) -> Any:
        if self._json_data is None:
            # Mirrors requests: decoding a non-JSON body raises a ValueError subclass
            return json.loads(self.text)
        return self._json_data


Reply = Union[FakeResponse, Exception]


class FakeApiClient:
    """
    Minimal fake GrafanaClient.

    Responses are keyed by (method, endpoint). A list of replies is consumed one
    per call; an Exception reply is raised instead of returned. Every call is
    recorded in ``calls``.
    """

    def __init__(self, responses: Dict[Tuple[str, str], Union[Reply, List[Reply]]], logger: FakeLogger) -> None:
        self._responses = {key: (list(value) if isinstance(value, list) else value)
                           for key, value in responses.items()}
        self.logger = logger
        self.calls: List[Dict[str, Any]] = []

    def _reply(self, method: str, endpoint: str, params: Any = None, data: Any = None) -> FakeResponse:
        self.calls.append({"method": method, "endpoint": endpoint, "params": params, "data": data})
        reply = self._responses.get((method, endpoint))
        if isinstance(reply, list):
            reply = reply.pop(0) if reply else None
        if reply is None:
            return FakeResponse(404, {"message": f"no fake response for {method} {endpoint}"})
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, endpoint: str, params: Any = None) -> FakeResponse:
        return self._reply("GET", endpoint, params=params)

    def post(self, endpoint: str, data: Any = None) -> FakeResponse:
        return self._reply("POST", endpoint, data=data)

    def count(self, method: str, endpoint: str) -> int:
        return sum(1 for c in self.calls if c["method"] == method and c["endpoint"] == endpoint)
