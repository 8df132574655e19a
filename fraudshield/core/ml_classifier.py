import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import joblib
import requests
from sklearn.ensemble import RandomForestClassifier
from sklearn.feature_extraction.text import TfidfVectorizer

from fraudshield.core.risk_scorer import ClassifierLabel, labels_from_dicts

logger = logging.getLogger(__name__)

FRAUD_CATEGORIES = (
    'ponzi_scheme', 'pump_dump', 'fake_ipo', 'advance_fee',
    'romance_scam', 'pyramid_scheme', 'fake_advisor', 'clone_app',
)

CLASSIFIER_PROMPT = """
You are a financial fraud detection expert. Analyze the following text for investment fraud indicators.

Text to analyze:
{text}

Classify the content and provide:
1. Primary fraud categories (if any): {categories}
2. Confidence score (0-100) for each category
3. Risk level: low/medium/high
4. Brief explanation of findings

Respond only with valid JSON:
{{
  "categories": [
    {{"name": "category_name", "confidence": 85, "explanation": "brief reason"}}
  ],
  "overall_risk": "high",
  "explanation": "Overall assessment explanation",
  "language_detected": "{language}"
}}
"""


class ClassifierError(Exception):
    """Raised by a classifier that cannot produce a result"""


@dataclass
class ClassificationResult:
    categories: List[ClassifierLabel] = field(default_factory=list)
    mock: bool = False
    provider: str = ''
    overall_risk: str = 'low'
    explanation: str = ''
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'categories': [label.to_dict() for label in self.categories],
            'mock': self.mock,
            'provider': self.provider,
            'overall_risk': self.overall_risk,
            'explanation': self.explanation,
            'error': self.error,
        }


def overall_risk_for(labels: Sequence[ClassifierLabel]) -> str:
    max_confidence = max((label.confidence for label in labels), default=0)
    if max_confidence >= 80:
        return 'high'
    elif max_confidence >= 60:
        return 'medium'
    return 'low'


class FraudClassifier(ABC):
    provider = 'base'
    is_mock = False

    @abstractmethod
    def classify(self, text: str, language: str = 'en') -> ClassificationResult:
        """Label investment-fraud categories with 0-100 confidences"""


class MockFraudClassifier(FraudClassifier):
    """
    Deterministic keyword classifier for offline use and demos

    A category fires when any of its keywords appears in the lower-cased
    text; confidence grows by 15 per matched keyword, capped at 95.
    """
    provider = 'mock'
    is_mock = True

    def __init__(self):
        self.patterns = {
            'ponzi_scheme': ['guaranteed', 'fixed return', 'recruit others', 'pyramid'],
            'pump_dump': ['target price', 'coordinate', 'buy together', 'exit strategy'],
            'fake_ipo': ['pre-ipo', 'firm allotment', 'unlisted shares', 'before listing'],
            'advance_fee': ['registration fee', 'processing charges', 'pay first', 'token amount'],
            'fake_advisor': ['sebi registered', 'certified expert', 'government approved'],
            'clone_app': ['clone app', 'duplicate', 'mirror app', 'fake app'],
        }

    def classify(self, text: str, language: str = 'en') -> ClassificationResult:
        lowercase_text = (text or '').lower()
        categories = []

        for category, keywords in self.patterns.items():
            matches = [keyword for keyword in keywords if keyword in lowercase_text]
            if matches:
                categories.append(ClassifierLabel(
                    category=category,
                    confidence=min(95, 60 + len(matches) * 15),
                    explanation=f"Detected keywords: {', '.join(matches)}",
                ))

        if categories:
            explanation = (f"Found {len(categories)} potential fraud indicators "
                           f"with high confidence patterns.")
        else:
            explanation = "No significant fraud patterns detected in the content."

        return ClassificationResult(
            categories=categories,
            mock=True,
            provider=self.provider,
            overall_risk=overall_risk_for(categories),
            explanation=explanation,
        )


class LLMFraudClassifier(FraudClassifier):
    """Classifier backed by an OpenAI-compatible chat-completions endpoint"""
    provider = 'llm'

    def __init__(self, api_url: str, api_key: Optional[str], model: str, timeout: int = 20):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

        self.http_session = requests.Session()
        self.http_session.headers.update({'User-Agent': 'FraudShield/1.0'})

    def classify(self, text: str, language: str = 'en') -> ClassificationResult:
        if not self.api_key:
            raise ClassifierError("LLM API key is not configured")

        payload = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': 'You are a financial fraud detection expert.'},
                {'role': 'user', 'content': CLASSIFIER_PROMPT.format(
                    text=text, categories=json.dumps(list(FRAUD_CATEGORIES)), language=language)},
            ],
            'temperature': 0.1,
            'max_tokens': 500,
        }
        headers = {'Authorization': f'Bearer {self.api_key}'}

        try:
            response = self.http_session.post(self.api_url, json=payload, headers=headers,
                                              timeout=self.timeout)
            response.raise_for_status()
            content = response.json()['choices'][0]['message']['content']
        except requests.Timeout as e:
            raise ClassifierError("LLM request timed out") from e
        except requests.RequestException as e:
            raise ClassifierError(f"LLM request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ClassifierError(f"Unexpected LLM response shape: {e}") from e

        return self.parse_reply(content)

    def parse_reply(self, content: str) -> ClassificationResult:
        """Pull the JSON object out of a free-form model reply"""
        content = content or ''
        start, end = content.find('{'), content.rfind('}')
        if start == -1 or end <= start:
            raise ClassifierError("LLM reply contains no JSON object")

        try:
            data = json.loads(content[start:end + 1])
        except json.JSONDecodeError as e:
            raise ClassifierError(f"LLM reply is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ClassifierError("LLM reply JSON is not an object")

        raw_categories = data.get('categories') or []
        if not isinstance(raw_categories, list):
            raise ClassifierError("LLM reply 'categories' is not a list")

        # Replies name the category under "name"
        labels = labels_from_dicts([
            {**item, 'category': item.get('category', item.get('name'))}
            for item in raw_categories
            if isinstance(item, dict) and (item.get('category') or item.get('name'))
        ])

        overall_risk = str(data.get('overall_risk', '')).lower()
        if overall_risk not in ('low', 'medium', 'high'):
            overall_risk = overall_risk_for(labels)

        return ClassificationResult(
            categories=labels,
            mock=False,
            provider=self.provider,
            overall_risk=overall_risk,
            explanation=str(data.get('explanation', '')),
        )


class TrainedFraudClassifier(FraudClassifier):
    """TF-IDF + RandomForest model persisted with joblib"""
    provider = 'model'

    def __init__(self,
                 model_path: str = './models/fraud_model.pkl',
                 vectorizer_path: str = './models/fraud_vectorizer.pkl'):
        self.model_path = model_path
        self.vectorizer_path = vectorizer_path

        self.model = None
        self.vectorizer = None
        self.is_trained = False

        self._load_model()

    def _load_model(self):
        if os.path.exists(self.model_path) and os.path.exists(self.vectorizer_path):
            self.model = joblib.load(self.model_path)
            self.vectorizer = joblib.load(self.vectorizer_path)
            self.is_trained = True
            logger.info("Fraud model loaded from %s", self.model_path)
        else:
            logger.warning("No trained fraud model at %s", self.model_path)

    def train(self, texts: list, labels: list):
        """Fit on labelled texts (1 = fraud, 0 = legitimate) and save both artifacts"""
        logger.info("Training fraud model on %d samples", len(texts))

        self.vectorizer = TfidfVectorizer(
            max_features=5000,
            ngram_range=(1, 2),
            min_df=1,
            max_df=0.95
        )
        X = self.vectorizer.fit_transform(texts)

        self.model = RandomForestClassifier(
            n_estimators=100,
            max_depth=20,
            random_state=42,
            n_jobs=-1
        )
        self.model.fit(X, labels)

        for path in (self.model_path, self.vectorizer_path):
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        joblib.dump(self.model, self.model_path)
        joblib.dump(self.vectorizer, self.vectorizer_path)

        self.is_trained = True
        logger.info("Fraud model trained and saved to %s", self.model_path)

    def fraud_probability(self, text: str) -> float:
        if not self.is_trained:
            raise ClassifierError("Fraud model is not trained")

        X = self.vectorizer.transform([text or ''])
        proba = self.model.predict_proba(X)[0]
        classes = list(self.model.classes_)
        if 1 not in classes:
            return 0.0
        return float(proba[classes.index(1)])

    def classify(self, text: str, language: str = 'en') -> ClassificationResult:
        probability = self.fraud_probability(text)
        label = ClassifierLabel(
            category='investment_fraud',
            confidence=int(round(probability * 100)),
            explanation=f"RandomForest fraud probability {probability:.0%}",
        )
        return ClassificationResult(
            categories=[label],
            mock=False,
            provider=self.provider,
            overall_risk=overall_risk_for([label]),
            explanation="Traditional ML model prediction",
        )


def build_classifier(settings) -> FraudClassifier:
    provider = (settings.CLASSIFIER_PROVIDER or 'mock').lower()

    if provider == 'mock':
        return MockFraudClassifier()
    if provider == 'llm':
        return LLMFraudClassifier(
            api_url=settings.LLM_API_URL,
            api_key=settings.LLM_API_KEY,
            model=settings.LLM_MODEL,
            timeout=settings.LLM_TIMEOUT,
        )
    if provider == 'model':
        return TrainedFraudClassifier(
            model_path=settings.CLASSIFIER_MODEL_PATH,
            vectorizer_path=settings.CLASSIFIER_VECTORIZER_PATH,
        )
    raise ValueError(f"Unsupported classifier provider: {settings.CLASSIFIER_PROVIDER}")


def classify_safely(classifier: Optional[FraudClassifier], text: str,
                    language: str = 'en') -> ClassificationResult:
    """
    Run a classifier, turning any failure into an empty result

    A missing or failing classifier contributes no labels (and so no boost).
    """
    if classifier is None:
        return ClassificationResult(provider='none')

    try:
        return classifier.classify(text, language)
    except Exception as e:
        provider = getattr(classifier, 'provider', type(classifier).__name__)
        logger.warning("Classifier %s failed: %s", provider, e,
                       extra={'event': 'classifier_failed', 'provider': provider, 'error': str(e)})
        return ClassificationResult(
            categories=[],
            mock=getattr(classifier, 'is_mock', False),
            provider=provider,
            error=str(e),
        )
