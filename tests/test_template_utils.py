from clinic_notifications.utils.template_utils import find_placeholders, render


class TestRender:
    def test_replaces_known_placeholders(self):
        text = render("Olá {patient}, até {date} às {time}.", {
            "patient": "Maria", "date": "10/01/2024", "time": "14:00"
        })
        assert text == "Olá Maria, até 10/01/2024 às 14:00."

    def test_unknown_placeholder_left_verbatim(self):
        text = render("Olá {patient} {unknownName}", {"patient": "Maria"})
        assert text == "Olá Maria {unknownName}"

    def test_none_value_left_verbatim(self):
        assert render("Sala {room}", {"room": None}) == "Sala {room}"

    def test_repeated_placeholder(self):
        assert render("{clinic} - {clinic}", {"clinic": "Essencial"}) == "Essencial - Essencial"

    def test_non_word_braces_untouched(self):
        assert render("{ patient } {}", {"patient": "Maria"}) == "{ patient } {}"

    def test_empty_template(self):
        assert render("", {"patient": "Maria"}) == ""


def test_find_placeholders_in_order_without_duplicates():
    assert find_placeholders("{b} {a} {b} {c}") == ["b", "a", "c"]
