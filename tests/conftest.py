import pytest

from dumpmigrate.config import MigrationConfig
from dumpmigrate.idmap import IdentifierMapper


@pytest.fixture
def mapper():
    return IdentifierMapper()


@pytest.fixture
def config(tmp_path):
    return MigrationConfig(
        id_map_path=str(tmp_path / "id-mappings.json"),
        output_dir=str(tmp_path / "out"),
        diagnostics_path=str(tmp_path / "diagnostics.log"),
    )
