import pytest
from click.testing import CliRunner

LIST_COMPONENT = """import { Component, ChangeDetectionStrategy } from '@angular/core';

@Component({
  selector: 'app-list',
  changeDetection: ChangeDetectionStrategy.OnPush,
  template: `<li *ngFor="let item of items">{{ item }}</li>`,
})
export class ListComponent {
  items: string[] = [];
}
"""

MATH_SERVICE = """export class MathService {
  add(a: number, b: number): number {
    return a + b;
  }
}
"""


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def app_dir(tmp_path, monkeypatch):
    """An Angular workspace used as the working directory, isolated from global config."""
    home = tmp_path / "home"
    home.mkdir()
    workspace = tmp_path / "workspace"
    (workspace / "src" / "app").mkdir(parents=True)
    (workspace / "src" / "app" / "list.component.ts").write_text(LIST_COMPONENT)
    (workspace / "src" / "app" / "math.service.ts").write_text(MATH_SERVICE)

    monkeypatch.setattr("pathlib.Path.home", lambda: home)
    for name in ("NGSAGE_SEVERITY_MIN", "NGSAGE_FORMAT", "NGSAGE_MAX_WORKERS", "NGSAGE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(workspace)
    return workspace
