"""Built-in provider definitions.

Registered ahead of user providers, so user specs using one of these names
are rejected as duplicates.
"""

from constants import Constants
from provider.models import ProviderSpec

GITHUB = ProviderSpec(
    name="github",
    versions_url=(
        Constants.GITHUB_API_BASE
        + "/repos/{{ .Provider.Host }}/{{ .Provider.Path }}/releases"
        + f"?per_page={Constants.REPO_API_PER_PAGE}"
    ),
    versions_path=Constants.RELEASE_TAGS_JSON_PATH,
    download_url=(
        Constants.GITHUB_BASE
        + "/{{ .Provider.Host }}/{{ .Provider.Path }}/releases/download/"
        + "{{ .Version }}/{{ tpl .Provider.Query.asset . }}"
    ),
    auth_token="${" + Constants.ENV_GITHUB_TOKEN + "}",
    required_params=("asset",),
)

# GitLab addresses projects by their URL-escaped "namespace/name" path.
GITLAB = ProviderSpec(
    name="gitlab",
    versions_url=(
        Constants.GITLAB_API_BASE
        + '/projects/{{ urlquery (print .Provider.Host "/" .Provider.Path) }}/releases'
        + f"?per_page={Constants.REPO_API_PER_PAGE}"
    ),
    versions_path=Constants.RELEASE_TAGS_JSON_PATH,
    download_url=(
        Constants.GITLAB_BASE
        + "/{{ .Provider.Host }}/{{ .Provider.Path }}/-/releases/"
        + "{{ .Version }}/downloads/{{ tpl .Provider.Query.asset . }}"
    ),
    auth_token="${" + Constants.ENV_GITLAB_TOKEN + "}",
    required_params=("asset",),
)

HTTPS = ProviderSpec(
    name="https",
    download_url="https://{{ .Provider.Host }}/{{ tpl .Provider.Path . }}",
)

HTTP = ProviderSpec(
    name="http",
    download_url="http://{{ .Provider.Host }}/{{ tpl .Provider.Path . }}",
)

BUILTIN_PROVIDERS = (GITHUB, GITLAB, HTTPS, HTTP)
