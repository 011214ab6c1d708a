import json

from google.api_core.exceptions import InternalServerError, ResourceExhausted

from classroom_portal.ai_gateway import QUIZ_LENGTH, AIGateway


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for genai.GenerativeModel: returns canned text or raises."""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []
        self.configs = []

    def generate_content(self, prompt, generation_config=None):
        self.prompts.append(prompt)
        self.configs.append(generation_config)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


def gateway_for(model):
    return AIGateway(model_factory=lambda name: model)


def test_translate_returns_hanzi_and_pinyin():
    model = FakeModel(json.dumps({"hanzi": "谢谢", "pinyin": "xièxie"}))
    assert gateway_for(model).translate("thank you") == {"hanzi": "谢谢", "pinyin": "xièxie"}
    assert "thank you" in model.prompts[0]
    assert model.configs[0].response_mime_type == "application/json"


def test_translate_empty_text_never_calls_model():
    model = FakeModel("{}")
    assert gateway_for(model).translate("") is None
    assert gateway_for(model).translate("   ") is None
    assert model.prompts == []


def test_translate_swallows_transport_and_quota_errors():
    assert gateway_for(FakeModel(error=ResourceExhausted("quota"))).translate("hi") is None
    assert gateway_for(FakeModel(error=InternalServerError("boom"))).translate("hi") is None
    assert gateway_for(FakeModel(error=ConnectionError("offline"))).translate("hi") is None


def test_translate_rejects_off_schema_output():
    assert gateway_for(FakeModel("not json")).translate("hi") is None
    assert gateway_for(FakeModel(json.dumps({"hanzi": "你好"}))).translate("hi") is None
    assert gateway_for(FakeModel(json.dumps(["你好"]))).translate("hi") is None


def test_gateway_without_key_is_unavailable():
    gateway = AIGateway(api_key="")
    assert not gateway.available
    assert gateway.translate("hello") is None
    assert gateway.generate_quiz("food", "ordering") == []


def test_generate_quiz_keeps_well_formed_items():
    payload = [
        {"question": "What is 米饭?", "options": ["Rice", "Noodles", "Tea", "Soup"], "correctAnswer": "Rice", "explanation": "米 = rice"},
        {"question": "Missing answer", "options": ["a", "b"]},
        "garbage",
        {"question": "Only one option", "options": ["x"], "correctAnswer": "x"},
    ]
    model = FakeModel(json.dumps(payload))
    questions = gateway_for(model).generate_quiz("food vocabulary", "order a meal")
    assert [q["question"] for q in questions] == ["What is 米饭?", "Only one option"]
    assert questions[1]["explanation"] == ""
    assert str(QUIZ_LENGTH) in model.prompts[0]


def test_generate_quiz_blank_context_or_failure_is_empty():
    assert gateway_for(FakeModel("[]")).generate_quiz("  ", "x") == []
    assert gateway_for(FakeModel(error=ResourceExhausted("quota"))).generate_quiz("food", "x") == []
    assert gateway_for(FakeModel(json.dumps({"question": "not a list"}))).generate_quiz("food", "x") == []
