import unittest

from errors import MalformedExpressionError
from search.expression_parser import call_arguments, parse_expression, tokenize, unwrap_group


class TestTokenize(unittest.TestCase):
    def test_operators_and_literals(self):
        tokens = tokenize("t=='a b' && !q!=\"c\"")

        self.assertEqual(
            [(token.kind, token.value) for token in tokens],
            [
                ("id", "t"),
                ("op", "=="),
                ("str", "a b"),
                ("op", "&&"),
                ("op", "!"),
                ("id", "q"),
                ("op", "!="),
                ("str", "c"),
                ("end", ""),
            ],
        )

    def test_string_escapes(self):
        tokens = tokenize(r"'it\'s'")
        self.assertEqual(tokens[0].value, "it's")

    def test_unterminated_string_reports_position(self):
        with self.assertRaises(MalformedExpressionError) as ctx:
            tokenize("t == 'abc")
        self.assertEqual(ctx.exception.position, 5)

    def test_unknown_character(self):
        with self.assertRaises(MalformedExpressionError) as ctx:
            tokenize("t == #")
        self.assertEqual(ctx.exception.position, 5)


class TestParseSearchExpressions(unittest.TestCase):
    def test_condition(self):
        self.assertEqual(parse_expression("t == 'title'"), ["==", "t", [None, "title"]])

    def test_composite_binds_tighter_than_and(self):
        ast = parse_expression("t=='publish-date' ^ q=='/2000-.+/' && t=='title' ^ q!='x'")

        self.assertEqual(
            ast,
            [
                "&&",
                ["^", ["==", "t", [None, "publish-date"]], ["==", "q", [None, "/2000-.+/"]]],
                ["^", ["==", "t", [None, "title"]], ["!=", "q", [None, "x"]]],
            ],
        )

    def test_precedence_of_set_operators(self):
        ast = parse_expression("t=='a' || t=='b' && t=='c' - t=='d'")

        self.assertEqual(ast[0], "||")
        self.assertEqual(ast[2][0], "&&")
        self.assertEqual(ast[2][2][0], "-")

    def test_left_associativity(self):
        ast = parse_expression("t=='a' - t=='b' - t=='c'")

        self.assertEqual(ast[0], "-")
        self.assertEqual(ast[1][0], "-")
        self.assertEqual(ast[2], ["==", "t", [None, "c"]])

    def test_not_and_group(self):
        ast = parse_expression("!(t=='a' || t=='b')")

        self.assertEqual(ast[0], "!")
        self.assertEqual(ast[1][0], "()")
        self.assertEqual(unwrap_group(ast[1])[0], "||")

    def test_empty_expression(self):
        with self.assertRaises(MalformedExpressionError):
            parse_expression("   ")

    def test_missing_operand(self):
        with self.assertRaises(MalformedExpressionError):
            parse_expression("t == ")

    def test_missing_closing_parenthesis(self):
        with self.assertRaises(MalformedExpressionError):
            parse_expression("(t == 'a'")

    def test_trailing_tokens(self):
        with self.assertRaises(MalformedExpressionError):
            parse_expression("t == 'a')")


class TestParseTaggingExpressions(unittest.TestCase):
    def test_call(self):
        self.assertEqual(
            parse_expression("add(t('x'))"),
            ["()", "add", ["()", "t", [None, "x"]]],
        )

    def test_call_without_arguments(self):
        self.assertEqual(parse_expression("f()"), ["()", "f", None])

    def test_member_call_chain(self):
        ast = parse_expression("connect(t('x'), s('local').id('1'))")

        self.assertEqual(ast[1], "connect")
        arguments = call_arguments(ast[2])
        self.assertEqual(len(arguments), 2)
        self.assertEqual(
            arguments[1],
            ["()", [".", ["()", "s", [None, "local"]], "id"], [None, "1"]],
        )

    def test_statements_with_trailing_delimiter(self):
        ast = parse_expression("add(t('x')); add(t('y'));")

        self.assertEqual(ast[0], ";")
        self.assertEqual(ast[1][1], "add")
        self.assertEqual(ast[2][1], "add")

    def test_literal_is_not_callable(self):
        with self.assertRaises(MalformedExpressionError):
            parse_expression("'x'('y')")

    def test_member_needs_name(self):
        with self.assertRaises(MalformedExpressionError):
            parse_expression("s('a').'b'")

    def test_call_arguments_flattens(self):
        ast = parse_expression("f('a', 'b', 'c')")
        self.assertEqual(call_arguments(ast[2]), [[None, "a"], [None, "b"], [None, "c"]])
        self.assertEqual(call_arguments(None), [])


if __name__ == "__main__":
    unittest.main()
