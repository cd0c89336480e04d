"""GitHub Actions workflows for extracted repositories.

Workflow files use ``${{ ... }}`` expressions, so module values are
substituted through ``@NAME@`` tokens instead of ``str.format``.
"""

from __future__ import annotations

from typing import Dict, Mapping

from repomigrate.config.schema import DescriptorConfig
from repomigrate.graph.models import Module

WORKFLOWS_DIR = ".github/workflows"

_CI = """\
name: Continuous Integration

on:
  push:
    branches: [ main, develop ]
  pull_request:
    branches: [ main ]

jobs:
  test:
    runs-on: ubuntu-latest
    strategy:
      matrix:
        java-version: [ @JAVA_MATRIX@ ]
    steps:
      - uses: actions/checkout@v4
      - name: Set up JDK ${{ matrix.java-version }}
        uses: actions/setup-java@v4
        with:
          java-version: ${{ matrix.java-version }}
          distribution: temurin
          cache: maven
      - name: Verify
        run: mvn --batch-mode clean verify
      - name: Upload test reports
        if: always()
        uses: actions/upload-artifact@v4
        with:
          name: test-reports-java-${{ matrix.java-version }}
          path: target/surefire-reports/
"""

_PUBLISH = """\
name: Publish @ARTIFACT_ID@

on:
  release:
    types: [ created ]
  workflow_dispatch:
    inputs:
      version:
        description: Version to release
        required: true
        default: '@VERSION@'

env:
  MAVEN_GROUP_ID: @GROUP_ID@
  MAVEN_ARTIFACT_ID: @ARTIFACT_ID@

jobs:
  publish:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - name: Set up JDK @JAVA_RELEASE@ with deploy credentials
        uses: actions/setup-java@v4
        with:
          java-version: '@JAVA_RELEASE@'
          distribution: temurin
          cache: maven
          server-id: @SERVER_ID@
          server-username: MAVEN_USERNAME
          server-password: MAVEN_PASSWORD
          gpg-private-key: ${{ secrets.MAVEN_GPG_PRIVATE_KEY }}
          gpg-passphrase: MAVEN_GPG_PASSPHRASE
      - name: Set release version
        if: github.event_name == 'workflow_dispatch'
        run: mvn --batch-mode versions:set -DnewVersion=${{ github.event.inputs.version }} -DgenerateBackupPoms=false
      - name: Deploy
        run: mvn --batch-mode --no-transfer-progress clean deploy -P @RELEASE_PROFILE@
        env:
          MAVEN_USERNAME: ${{ secrets.OSSRH_USERNAME }}
          MAVEN_PASSWORD: ${{ secrets.OSSRH_TOKEN }}
          MAVEN_GPG_PASSPHRASE: ${{ secrets.MAVEN_GPG_PASSPHRASE }}
"""

_DOCS = """\
name: Documentation

on:
  push:
    branches: [ main ]
  pull_request:
    branches: [ main ]

jobs:
  docs:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - uses: actions/setup-java@v4
        with:
          java-version: '@JAVA_RELEASE@'
          distribution: temurin
          cache: maven
      - name: Generate Javadoc
        run: mvn --batch-mode clean javadoc:javadoc
      - name: Deploy to GitHub Pages
        if: github.ref == 'refs/heads/main'
        uses: peaceiris/actions-gh-pages@v3
        with:
          github_token: ${{ secrets.GITHUB_TOKEN }}
          publish_dir: target/site/apidocs
          destination_dir: javadoc
"""

_SECRETS = """\
# Required GitHub Secrets

Publishing `@GROUP_ID@:@ARTIFACT_ID@` from the `publish` workflow needs
these repository secrets:

| Secret | Purpose |
|---|---|
| `OSSRH_USERNAME` | Sonatype OSSRH user name |
| `OSSRH_TOKEN` | Sonatype OSSRH token (not the account password) |
| `MAVEN_GPG_PRIVATE_KEY` | ASCII-armored private signing key |
| `MAVEN_GPG_PASSPHRASE` | Passphrase of the signing key |

## Signing key

```bash
gpg --full-generate-key
gpg --armor --export-secret-keys YOUR_KEY_ID
gpg --keyserver keyserver.ubuntu.com --send-keys YOUR_KEY_ID
gpg --keyserver keys.openpgp.org --send-keys YOUR_KEY_ID
```

Add the four secrets under Settings > Secrets and variables > Actions,
then run the workflow manually once and check the staging repository
at @NEXUS_URL@ before releasing.
"""


def _fill(template: str, values: Mapping[str, str]) -> str:
    for key, value in values.items():
        template = template.replace(f"@{key}@", value)
    return template


def render_workflows(module: Module, config: DescriptorConfig) -> Dict[str, str]:
    """Render CI, publish and docs workflows plus the secrets guide."""
    values = {
        "GROUP_ID": module.group_id,
        "ARTIFACT_ID": module.artifact_id,
        "VERSION": config.version,
        "JAVA_RELEASE": config.java_release,
        "JAVA_MATRIX": ", ".join(config.ci_java_versions),
        "SERVER_ID": config.staging_server_id,
        "RELEASE_PROFILE": config.release_profile,
        "NEXUS_URL": config.nexus_url,
    }
    return {
        f"{WORKFLOWS_DIR}/ci.yml": _fill(_CI, values),
        f"{WORKFLOWS_DIR}/publish.yml": _fill(_PUBLISH, values),
        f"{WORKFLOWS_DIR}/docs.yml": _fill(_DOCS, values),
        ".github/SECRETS.md": _fill(_SECRETS, values),
    }


__all__ = ["WORKFLOWS_DIR", "render_workflows"]
