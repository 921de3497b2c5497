import gzip
import json

import pytest

from dumpmigrate import DumpReadError
from dumpmigrate.parser import DumpParser, parse_dump, parse_dump_file, write_report_json

DUMP = """-- MySQL dump 10.13
/*!40101 SET NAMES utf8mb4 */;

DROP TABLE IF EXISTS `users`;
CREATE TABLE `users` (
  `id` int(11) NOT NULL AUTO_INCREMENT,
  `full_name` varchar(255) DEFAULT NULL,
  `email` varchar(255) DEFAULT NULL,
  PRIMARY KEY (`id`)
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;

LOCK TABLES `users` WRITE;
INSERT INTO `users` VALUES (1,'O\\'Brien','ob@example.com'),(2,'Semi; Colon',NULL);
INSERT INTO `users` VALUES (3,'Third','t@example.com');
UNLOCK TABLES;

CREATE TABLE `plans` (
  `id` int(11) NOT NULL,
  `name` varchar(50) DEFAULT NULL,
  `amount` varchar(20) DEFAULT NULL
);

INSERT INTO `plans` VALUES (1,'Gold','1,499',42,'extra');
INSERT INTO `plans` VALUES (2,'Basic');

CREATE TABLE `empty_table` (`id` int);
"""


def _make_dump(path) -> None:
    path.write_text(DUMP, encoding="utf-8")


def test_rows_keyed_by_schema_columns():
    tables, _ = parse_dump(DUMP, ["users"])
    assert tables["users"] == [
        {"id": 1, "full_name": "O'Brien", "email": "ob@example.com"},
        {"id": 2, "full_name": "Semi; Colon", "email": None},
        {"id": 3, "full_name": "Third", "email": "t@example.com"},
    ]


def test_extra_values_dropped_and_missing_left_unset():
    tables, _ = parse_dump(DUMP, ["plans"])
    assert tables["plans"][0] == {"id": 1, "name": "Gold", "amount": "1,499"}
    assert tables["plans"][1] == {"id": 2, "name": "Basic"}
    assert "amount" not in tables["plans"][1]


def test_missing_table_is_not_fatal():
    tables, diagnostics = parse_dump(DUMP, ["ghost", "users"])
    assert tables["ghost"] == []
    assert len(tables["users"]) == 3
    assert diagnostics.tables["ghost"].schema_found is False
    assert "ghost" in diagnostics.failed_tables


def test_table_without_inserts_is_empty():
    tables, diagnostics = parse_dump(DUMP, ["empty_table"])
    assert tables["empty_table"] == []
    assert diagnostics.tables["empty_table"].schema_found is True
    assert diagnostics.tables["empty_table"].statement_count == 0


def test_explicit_column_list_is_honoured():
    dump = (
        "CREATE TABLE `t` (`a` int, `b` int, `c` int);\n"
        "INSERT INTO `t` (`c`,`a`) VALUES (3,1),(6,4);\n"
    )
    tables, _ = parse_dump(dump, ["t"])
    assert tables["t"] == [{"c": 3, "a": 1}, {"c": 6, "a": 4}]


def test_qualified_insert_dialect():
    dump = (
        "CREATE TABLE `t` (`a` int, `b` varchar(5));\n"
        "INSERT IGNORE INTO `shop`.`t` VALUES (1,'x');\n"
    )
    parser = DumpParser(dump)
    assert parser.parse_table("t") == [{"a": 1, "b": "x"}]
    assert parser.diagnostics.tables["t"].strategy == "qualified"


def test_diagnostics_report(tmp_path):
    log_path = tmp_path / "diag.log"
    dump_file = tmp_path / "dump.sql"
    _make_dump(dump_file)

    tables, diagnostics = parse_dump_file(
        str(dump_file), ["users", "ghost"], diagnostics_path=str(log_path)
    )
    assert len(tables["users"]) == 3
    report = log_path.read_text(encoding="utf-8")
    assert "SQL DUMP PARSE DIAGNOSTICS" in report
    assert "Table: users" in report
    assert "Found 2 INSERT statements" in report
    assert "Table: ghost" in report
    assert "ERROR: Could not extract schema" in report
    assert diagnostics.rows_extracted == 3


def test_diagnostics_are_appended(tmp_path):
    log_path = tmp_path / "diag.log"
    dump_file = tmp_path / "dump.sql"
    _make_dump(dump_file)
    parse_dump_file(str(dump_file), ["users"], diagnostics_path=str(log_path))
    parse_dump_file(str(dump_file), ["users"], diagnostics_path=str(log_path))
    assert log_path.read_text(encoding="utf-8").count("SQL DUMP PARSE DIAGNOSTICS") == 2


def test_gzip_dump(tmp_path):
    dump_file = tmp_path / "dump.sql.gz"
    with gzip.open(dump_file, "wt", encoding="utf-8") as f:
        f.write(DUMP)
    tables, _ = parse_dump_file(str(dump_file), ["users"])
    assert [row["id"] for row in tables["users"]] == [1, 2, 3]


def test_unreadable_dump_raises_and_records(tmp_path):
    log_path = tmp_path / "diag.log"
    with pytest.raises(DumpReadError):
        parse_dump_file(
            str(tmp_path / "missing.sql"), ["users"], diagnostics_path=str(log_path)
        )
    assert "ERROR READING SQL DUMP" in log_path.read_text(encoding="utf-8")


def test_write_report_json(tmp_path):
    _, diagnostics = parse_dump(DUMP, ["users", "ghost"])
    out = tmp_path / "report.json"
    write_report_json(diagnostics, str(out))
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["rows_extracted"] == 3
    assert data["tables"]["users"]["strategy"] == "standard"
    assert data["tables"]["ghost"]["schema_found"] is False


def test_insert_without_values_does_not_borrow_later_rows():
    dump = (
        "CREATE TABLE `t` (`a` int, `b` int);\n"
        "CREATE TABLE `u` (`x` int, `y` int);\n"
        "INSERT INTO `t` SET a = 1, b = 2;\n"
        "INSERT INTO `u` VALUES (9,8);\n"
    )
    tables, diagnostics = parse_dump(dump, ["t", "u"])
    assert tables["t"] == []
    assert tables["u"] == [{"x": 9, "y": 8}]
    messages = [e.message for e in diagnostics.tables["t"].errors]
    assert messages == ["no VALUES list found"]
