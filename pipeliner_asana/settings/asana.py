from typing import Dict, Optional

from .base import BaseSettings

DEFAULT_API_URL = "https://app.asana.com/api/1.0"
DEFAULT_TEMPLATE_SET = "industrial_automation"


class AsanaSettings(BaseSettings):
    """
    Settings for the Asana REST API.
    """

    def __init__(self):
        """Read the Asana settings from the environment."""
        # Personal access token; without it every Asana call is skipped
        self.access_token: Optional[str] = self.get_env("ASANA_ACCESS_TOKEN")

        self.workspace_id: Optional[str] = self.get_env("ASANA_WORKSPACE_ID")

        # Required by organisation workspaces, optional otherwise
        self.team_id: Optional[str] = self.get_env("ASANA_TEAM_ID")

        # Reported at startup only, projects are never cloned from it
        self.template_project_id: Optional[str] = self.get_env(
            "ASANA_TEMPLATE_PROJECT_ID"
        )

        self.api_url = self.get_env("ASANA_API_URL", DEFAULT_API_URL).rstrip("/")
        self.timeout = self.get_float_env("ASANA_TIMEOUT", 30.0)

        # Project defaults
        self.public_projects = self.get_bool_env("ASANA_PUBLIC_PROJECTS", True)
        self.default_view = self.get_env("ASANA_DEFAULT_VIEW", "list")

        # Section/task catalog applied to every new project
        self.template_set = self.get_env("ASANA_TEMPLATE_SET", DEFAULT_TEMPLATE_SET)
        self.template_file: Optional[str] = self.get_env("ASANA_TEMPLATE_FILE")

    def get_headers(self) -> Dict[str, str]:
        """
        Headers for authenticated Asana requests.

        Returns:
            Dict[str, str]: Bearer authorization and JSON content headers
        """
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def is_configured(self) -> bool:
        """
        Check whether an access token is available.

        Returns:
            bool: True if Asana calls can be made
        """
        return bool(self.access_token)
