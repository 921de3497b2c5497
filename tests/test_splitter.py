from dumpmigrate.splitter import find_statement_end, split_row_into_fields, split_rows


def test_split_rows_respects_strings():
    rows = split_rows("(1,'a,b',NULL),(2,'c''d',3)")
    assert rows == ["1,'a,b',NULL", "2,'c''d',3"]


def test_split_rows_parentheses_inside_strings():
    rows = split_rows("(1,'smile :)'),(2,'(x')")
    assert rows == ["1,'smile :)'", "2,'(x'"]


def test_split_rows_stripped_outer_parentheses():
    assert split_rows("1,'a'),(2,'b'") == ["1,'a'", "2,'b'"]


def test_split_rows_trailing_semicolon_and_whitespace():
    assert split_rows("  (1),\n(2);\n") == ["1", "2"]


def test_split_rows_keeps_unterminated_final_row():
    assert split_rows("(1,'a'),(2,'b'") == ["1,'a'", "2,'b'"]


def test_split_rows_empty():
    assert split_rows("   ") == []


def test_split_rows_nested_parentheses():
    assert split_rows("(1,POINT(1,2)),(2,NULL)") == ["1,POINT(1,2)", "2,NULL"]


def test_split_row_into_fields():
    assert split_row_into_fields("1,'a,b',NULL") == ["1", "'a,b'", "NULL"]


def test_split_row_into_fields_escaped_quote():
    assert split_row_into_fields(r"1,'O\'Brien, Jr',2") == ["1", r"'O\'Brien, Jr'", "2"]


def test_split_row_into_fields_drops_trailing_empty_token():
    assert split_row_into_fields("1,2,") == ["1", "2"]


def test_split_row_into_fields_keeps_inner_empty_token():
    assert split_row_into_fields("1,,2") == ["1", "", "2"]


def test_find_statement_end_skips_semicolons_in_strings():
    text = "INSERT INTO `t` VALUES (1,'a;b');\nINSERT"
    assert find_statement_end(text, 0) == text.index(");") + 1


def test_find_statement_end_unterminated():
    assert find_statement_end("INSERT INTO `t` VALUES (1,'a;", 0) == -1
