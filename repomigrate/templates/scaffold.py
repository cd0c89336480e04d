"""Fixed scaffold files written next to every extracted descriptor."""

from __future__ import annotations

from typing import Dict

from repomigrate.config.schema import DescriptorConfig
from repomigrate.graph.models import Module
from repomigrate.templates.workflows import render_workflows

_README = """\
# {title}

{description}

## Installation

### Maven

```xml
<dependency>
  <groupId>{group_id}</groupId>
  <artifactId>{artifact_id}</artifactId>
  <version>{version}</version>
</dependency>
```

### Gradle

```gradle
implementation '{group_id}:{artifact_id}:{version}'
```

## Building

```bash
mvn clean install
```

## Testing

```bash
mvn test
```

## License

This project is licensed under the {license_name} - see the [LICENSE](LICENSE) file for details.

## Contributing

Please read [CONTRIBUTING.md](CONTRIBUTING.md) for details on the process for submitting pull requests.

## Changelog

See [CHANGELOG.md](CHANGELOG.md) for version history.
"""

_CONTRIBUTING = """\
# Contributing Guide

## Development Process

This project follows Test-Driven Development (TDD):

- `[#123] Add failing test` - after adding a failing test
- `[#123] Naive implementation` - simple or stubbed solution
- `[#123] Working implementation` - real business logic
- `[#123] Refactor` - code improvement

## Pull Request Process

1. Create an issue for your feature or bug
2. Follow the TDD workflow
3. Submit a PR with a clear description
4. Ensure all tests pass
5. Request review from maintainers

## Code Style

- Use Java {java_release}+ features
- Follow existing naming conventions
- Add Javadoc for public APIs
"""

_CHANGELOG = """\
# Changelog

All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).

## [Unreleased]

## [{version}]

### Added

- Initial release extracted from the {monorepo} monorepo
"""

_GITIGNORE = """\
# Maven
target/
pom.xml.tag
pom.xml.releaseBackup
pom.xml.versionsBackup
pom.xml.next
release.properties
dependency-reduced-pom.xml
buildNumber.properties
.mvn/timing.properties
.mvn/wrapper/maven-wrapper.jar

# IDE
.idea/
*.iml
.vscode/
.classpath
.project
.settings/

# OS
.DS_Store
Thumbs.db
"""


def render_scaffold(module: Module, config: DescriptorConfig) -> Dict[str, str]:
    """Render README, CONTRIBUTING, CHANGELOG and .gitignore for ``module``.

    GitHub Actions workflows are added when ``config.ci_workflows`` is set.
    """
    description = module.description or (
        f"Extracted from the {config.monorepo_name} monorepo - "
        + module.source_path.replace("-", " ")
        + "."
    )
    files = {
        "README.md": _README.format(
            title=module.display_name,
            description=description,
            group_id=module.group_id,
            artifact_id=module.artifact_id,
            version=config.version,
            license_name=config.license_name,
        ),
        "CONTRIBUTING.md": _CONTRIBUTING.format(java_release=config.java_release),
        "CHANGELOG.md": _CHANGELOG.format(
            version=config.version, monorepo=config.monorepo_name
        ),
        ".gitignore": _GITIGNORE,
    }
    if config.ci_workflows:
        files.update(render_workflows(module, config))
    return files


__all__ = ["render_scaffold"]
