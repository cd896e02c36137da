"""Sane object wrappers for data returned by the API"""

from typing import Optional

from .utils import mine_for


class User:
    """Represents the account a client is acting as, as reported by `meta=userinfo`."""

    def __init__(self, e: dict):
        """Initializer, creates a new User

        Args:
            e (dict): The `"userinfo"` json object in the response from the server.
        """
        self.id: int = int(e.get("id", 0))
        self.name: str = e.get("name")
        self.is_anon: bool = bool(e.get("anon")) or not self.id
        self.groups: list[str] = e.get("groups", [])
        self.rights: list[str] = e.get("rights", [])

    def __repr__(self) -> str:
        return f"User: {self.name} | ID: {self.id} | Groups: {self.groups}"

    @property
    def is_bot(self) -> bool:
        return self.has_right("bot")

    def has_right(self, right: str) -> bool:
        """Checks if this User has been granted `right`.

        Args:
            right (str): The right to check for (e.g. `edit`, `upload`).

        Returns:
            bool: `True` if this User has `right`.
        """
        return right in self.rights


class SiteInfo:
    """Represents general information and namespace data of a wiki, as reported by `meta=siteinfo`."""

    def __init__(self, response: dict):
        """Initializer, creates a new SiteInfo

        Args:
            response (dict): The response from the server.
        """
        self.general: dict = mine_for(response, "query", "general") or {}
        self.namespaces: dict = mine_for(response, "query", "namespaces") or {}

    def __repr__(self) -> str:
        return f"SiteInfo: {self.general.get('sitename')} | Namespaces: {len(self.namespaces)}"

    @property
    def sparql_endpoint(self) -> Optional[str]:
        """The SPARQL query service url of a Wikibase installation.  `None` if the wiki does not advertise one."""
        return self.general.get("wikibase-sparql")

    @property
    def concept_base_uri(self) -> Optional[str]:
        """The prefix of Wikibase entity URIs (e.g. `http://www.wikidata.org/entity/`).  `None` if this is not a Wikibase installation."""
        return self.general.get("wikibase-conceptbaseuri")

    def namespace_name(self, ns_id: int, local: bool = False) -> Optional[str]:
        """Looks up the name of a namespace.

        Args:
            ns_id (int): The namespace id (e.g. `1` for `Talk`).
            local (bool, optional): Set `True` to prefer the localized name over the canonical (English) one. Defaults to False.

        Returns:
            Optional[str]: The name of the namespace, or `None` if it does not exist.
        """
        if not (info := self.namespaces.get(str(ns_id))):
            return None

        local_name = info.get("name", info.get("*"))
        return (local_name if local_name is not None else info.get("canonical")) if local else info.get("canonical", local_name)

    def entity_id_from_uri(self, uri: str) -> Optional[str]:
        """Extracts the entity id (e.g. `Q42`) from a Wikibase entity URI.

        Args:
            uri (str): The entity URI, as found in SPARQL results.

        Returns:
            Optional[str]: The entity id, or `None` if `uri` is not an entity URI of this wiki.
        """
        if (base := self.concept_base_uri) and uri.startswith(base):
            return uri[len(base):]
