"""
Tests for prompt construction.
==============================

Tests for:
- Template selection and placeholder filling
- Fallback prompt for unknown context types
- Few-shot loading
- Chain-of-thought helpers
"""

import pytest


@pytest.fixture
def builder():
    """PromptBuilder over the packaged templates."""
    from su_advisor.rag.prompts import PromptBuilder
    return PromptBuilder()


@pytest.fixture
def custom_prompts_dir(temp_dir):
    """Template directory with one custom template and one few-shot."""
    (temp_dir / "course_qa.txt").write_text(
        "Q={question} X={custom} U={unknown} C={context}", encoding="utf-8"
    )
    few_shots = temp_dir / "few_shots"
    few_shots.mkdir()
    (few_shots / "a_example.txt").write_text(
        "SORU: Örnek soru?\nDÜŞÜN:\n1. adım\nYANIT: Örnek yanıt.", encoding="utf-8"
    )
    (few_shots / "instructor_example.txt").write_text("YANIT: gizli", encoding="utf-8")
    return temp_dir


class TestPromptBuilder:
    """Tests for PromptBuilder.build."""

    def test_packaged_templates_loaded(self, builder):
        """Test that every context type has a template."""
        for context_type in ["course_qa", "graduation_check", "instructor_review", "path_advisor"]:
            assert builder.has_template(context_type)

    def test_course_qa(self, builder, sample_passages):
        """Test numbered context, question and defaults for missing student data."""
        prompt = builder.build("course_qa", "CS412 zor mu?", sample_passages)

        assert prompt.startswith("ÖRNEK YANITLAR:\n")
        assert "[1] CS412 projeleri ağır ama öğretici." in prompt
        assert "[3] MATH201 ödevleri haftalık veriliyor." in prompt
        assert "Soru: CS412 zor mu?" in prompt
        assert "Tamamlanan dersler: Yok" in prompt
        assert "Dönem: Bilinmiyor" in prompt
        assert "{" not in prompt

    def test_graduation_check_student_fields(self, builder):
        """Test the alternate placeholder names used by graduation_check."""
        prompt = builder.build(
            "graduation_check",
            "Mezun olabilir miyim?",
            [],
            major="CS",
            completed_courses=["CS201", "MATH101"],
            current_semester=5,
        )

        assert "Bölüm: CS" in prompt
        assert "Tamamlanan dersler: CS201, MATH101" in prompt
        assert "Dönem: 5" in prompt

    def test_instructor_review_uses_review_chunks(self, builder, sample_passages):
        """Test that review passages fill the review placeholder."""
        prompt = builder.build("instructor_review", "Hoca nasıl?", sample_passages)

        assert "[2] Final sınavı derste çözülen sorulara benziyordu." in prompt

    def test_negative_semester_is_unknown(self, builder):
        """Test that non-positive semesters render as unknown."""
        prompt = builder.build("path_advisor", "Plan öner", [], current_semester=-1)

        assert "Mevcut dönem: Bilinmiyor" in prompt

    def test_unknown_context_type_falls_back(self, builder, sample_passages):
        """Test the minimal prompt for an unknown context type."""
        prompt = builder.build("unknown_type", "CS412 zor mu?", sample_passages[:1])

        assert prompt.startswith("ÖRNEK YANITLAR:\n")
        assert prompt.endswith(
            "Bağlam:\nCS412 projeleri ağır ama öğretici.\n\nSoru: CS412 zor mu?\n\nYanıtla:"
        )

    def test_few_shots_exclude_instructor_examples(self, builder):
        """Test that instructor-review examples are not in the shared block."""
        assert "SORU ORNEGI: CS300 dersini almadan CS412 alabilir miyim?" in builder.few_shots
        assert "Bu hocanın dersi nasıl?" not in builder.few_shots
        assert "DÜŞÜN" not in builder.few_shots

    def test_extra_context_and_precedence(self, custom_prompts_dir):
        """Test extra placeholders, built-in precedence and untouched unknowns."""
        from su_advisor.rag.prompts import PromptBuilder
        from su_advisor.shared.schemas import Passage

        builder = PromptBuilder(custom_prompts_dir)
        prompt = builder.build(
            "course_qa",
            "gerçek soru {context}",
            [Passage(id="p", text="metin")],
            extra_context={"custom": "özel", "question": "ezilmemeli"},
        )

        body = prompt.split("\n\n---\n\n")[-1]
        assert body == "Q=gerçek soru {context} X=özel U={unknown} C=[1] metin"

    def test_custom_few_shots(self, custom_prompts_dir):
        """Test few-shot formatting from a custom directory."""
        from su_advisor.rag.prompts import PromptBuilder

        builder = PromptBuilder(custom_prompts_dir)

        assert builder.few_shots == "SORU ORNEGI: Örnek soru?\nYANIT ORNEGI:\nÖrnek yanıt."
        assert not builder.has_template("graduation_check")

    def test_missing_directory(self, temp_dir):
        """Test that a missing template directory is a configuration error."""
        from su_advisor.rag.prompts import PromptBuilder
        from su_advisor.shared.errors import ConfigurationMissingError

        with pytest.raises(ConfigurationMissingError):
            PromptBuilder(temp_dir / "nope")

    def test_no_few_shots_no_prefix(self, temp_dir):
        """Test that without few-shot files nothing is prepended."""
        from su_advisor.rag.prompts import PromptBuilder

        (temp_dir / "course_qa.txt").write_text("Soru: {question}", encoding="utf-8")

        assert PromptBuilder(temp_dir).build("course_qa", "Merhaba", []) == "Soru: Merhaba"


class TestFewShotFormatting:
    """Tests for format_few_shot."""

    def test_answer_only(self):
        """Test a file with only an answer."""
        from su_advisor.rag.prompts import format_few_shot

        assert format_few_shot("YANIT: Sadece yanıt.") == "YANIT ORNEGI:\nSadece yanıt."

    def test_format_context_numbering(self, sample_passages):
        """Test [i] numbering starting at one."""
        from su_advisor.rag.prompts import format_context

        lines = format_context(sample_passages).split("\n\n")

        assert [line[:3] for line in lines] == ["[1]", "[2]", "[3]"]


class TestChainOfThought:
    """Tests for the reasoning helpers."""

    def test_wrap_system_prompt(self):
        """Test that the instruction is appended after a blank line."""
        from su_advisor.rag.chain_of_thought import COT_INSTRUCTION, wrap_system_prompt

        assert wrap_system_prompt("Base") == f"Base\n\n{COT_INSTRUCTION}"

    def test_parse_steps(self):
        """Test leading numbered steps and the final answer."""
        from su_advisor.rag.chain_of_thought import parse_steps

        parsed = parse_steps("1. CS204 alındı\n2. Önkoşul tamam\nEvet, alabilirsin.\n3. not a step")

        assert [(s.step, s.reasoning) for s in parsed.steps] == [
            (1, "CS204 alındı"),
            (2, "Önkoşul tamam"),
        ]
        assert parsed.final_answer == "Evet, alabilirsin.\n3. not a step"

    def test_parse_without_steps(self):
        """Test that unnumbered text is all answer."""
        from su_advisor.rag.chain_of_thought import parse_steps

        parsed = parse_steps("Sadece yanıt.")

        assert parsed.steps == []
        assert parsed.final_answer == "Sadece yanıt."
