"""
Rule-based NLP.

Sentiment scores come from the AFINN word list (afinn package) with
rule-based emotion and intensity extras. Entities come from regular
expressions and capitalisation, intents from keyword lists.
Every call is stored as an NLPQuery under the tenant's processor for that
processing type.
"""
import logging
import re
import time
from collections import Counter

from afinn import Afinn
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.ai.models import NLPProcessor, NLPQuery
from apps.core.exceptions import ResourceNotFound, ValidationError

logger = logging.getLogger(__name__)

AFINN = Afinn(language='en')

EMOTION_KEYWORDS = {
    'joy': ['happy', 'excited', 'thrilled', 'delighted', 'pleased'],
    'anger': ['angry', 'furious', 'mad', 'irritated', 'annoyed'],
    'fear': ['scared', 'afraid', 'worried', 'anxious', 'nervous'],
    'sadness': ['sad', 'depressed', 'upset', 'disappointed', 'miserable'],
    'surprise': ['surprised', 'amazed', 'shocked', 'astonished'],
    'disgust': ['disgusted', 'revolted', 'appalled', 'repulsed'],
}

INTENSIFIERS = {'very', 'extremely', 'absolutely', 'completely', 'totally'}
DIMINISHERS = {'slightly', 'somewhat', 'rather', 'quite', 'fairly'}

INTENT_KEYWORDS = {
    'question': ['what', 'how', 'when', 'where', 'why', 'which', 'who', '?'],
    'request': ['please', 'can you', 'could you', 'would you', 'help'],
    'complaint': ['problem', 'issue', 'wrong', 'error', 'bug', 'broken'],
    'compliment': ['good', 'great', 'excellent', 'amazing', 'perfect', 'love'],
    'booking': ['book', 'reserve', 'schedule', 'appointment'],
    'cancellation': ['cancel', 'refund', 'return', 'change'],
    'information': ['info', 'about', 'details', 'explain', 'tell me'],
}

STOP_WORDS = {
    'a', 'about', 'above', 'after', 'again', 'all', 'also', 'and', 'any', 'are', 'because',
    'been', 'before', 'being', 'both', 'but', 'can', 'could', 'did', 'does', 'doing', 'down',
    'during', 'each', 'few', 'for', 'from', 'further', 'had', 'has', 'have', 'having', 'her',
    'here', 'hers', 'him', 'his', 'how', 'into', 'its', 'just', 'more', 'most', 'not', 'now',
    'off', 'once', 'only', 'other', 'our', 'ours', 'out', 'over', 'own', 'same', 'she',
    'should', 'some', 'such', 'than', 'that', 'the', 'their', 'them', 'then', 'there', 'these',
    'they', 'this', 'those', 'through', 'too', 'under', 'until', 'very', 'was', 'were', 'what',
    'when', 'where', 'which', 'while', 'who', 'whom', 'why', 'will', 'with', 'would', 'you',
    'your', 'yours',
}

EMAIL_RE = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
PHONE_RE = re.compile(r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b')
URL_RE = re.compile(r'https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b[-a-zA-Z0-9()@:%_+.~#?&/=]*')
WORD_RE = re.compile(r"[a-z']+")
CAPITALISED_RE = re.compile(r'\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b')

ORGANISATION_SUFFIXES = ('Inc', 'Ltd', 'GmbH', 'Corp', 'LLC', 'AG', 'Group', 'Company')
PLACE_HINTS = ('in', 'at', 'from', 'to', 'near')


def tokenize(text):
    return WORD_RE.findall((text or '').lower())


def classify_sentiment(score):
    if score > 0.1:
        return 'positive'
    if score < -0.1:
        return 'negative'
    return 'neutral'


def sentiment_intensity(text):
    """Start at 1.0, +0.2 per intensifier, -0.1 per diminisher, clamped to [0.1, 2.0]."""
    intensity = 1.0
    for word in (text or '').lower().split():
        if word in INTENSIFIERS:
            intensity += 0.2
        if word in DIMINISHERS:
            intensity -= 0.1
    return max(0.1, min(2.0, intensity))


def extract_emotions(text):
    lowered = (text or '').lower()
    return [emotion for emotion, keywords in EMOTION_KEYWORDS.items() if any(k in lowered for k in keywords)]


def analyze_sentiment(text):
    lowered = (text or '').lower()
    tokens = tokenize(lowered)
    matches = list(zip(AFINN.find_all(lowered), AFINN.scores(lowered)))
    score = AFINN.score(lowered)
    comparative = score / len(tokens) if tokens else 0.0

    return {
        'score': score,
        'comparative': comparative,
        'classification': classify_sentiment(score),
        'positive': [word for word, value in matches if value > 0],
        'negative': [word for word, value in matches if value < 0],
        'emotions': extract_emotions(text),
        'intensity': sentiment_intensity(text),
        'word_count': len(tokens),
    }


def extract_entities(text):
    text = text or ''
    people, places, organizations = [], [], []
    words = text.split()

    for match in CAPITALISED_RE.finditer(text):
        candidate = match.group(0)
        start = match.start()
        # Skip the first word of a sentence unless it is a multi-word name
        sentence_start = start == 0 or text[:start].rstrip().endswith(('.', '!', '?'))
        if sentence_start and ' ' not in candidate:
            continue

        preceding = text[:start].split()
        previous_word = preceding[-1].lower() if preceding else ''
        if candidate.split()[-1] in ORGANISATION_SUFFIXES:
            bucket = organizations
        elif previous_word in PLACE_HINTS:
            bucket = places
        else:
            bucket = people
        if candidate not in bucket:
            bucket.append(candidate)

    return {
        'people': people,
        'places': places,
        'organizations': organizations,
        'emails': EMAIL_RE.findall(text),
        'phones': PHONE_RE.findall(text),
        'urls': URL_RE.findall(text),
        'word_count': len(words),
        'confidence': 0.8,
    }


def classify_intent(text):
    lowered = (text or '').lower()
    scores = {intent: sum(1 for k in keywords if k in lowered) for intent, keywords in INTENT_KEYWORDS.items()}
    best_intent = max(scores, key=lambda intent: scores[intent])
    best = scores[best_intent]

    if best == 0:
        return {'intent': 'unknown', 'confidence': 0.3, 'scores': scores, 'keywords': []}

    return {
        'intent': best_intent,
        'confidence': min(0.9, best * 0.2 + 0.5),
        'scores': scores,
        'keywords': INTENT_KEYWORDS[best_intent],
    }


def extract_topics(text, limit=5):
    tokens = tokenize(text)
    filtered = [t for t in tokens if t not in STOP_WORDS and len(t) > 2]
    frequency = Counter(filtered)
    return {
        'topics': [{'word': word, 'frequency': count} for word, count in frequency.most_common(limit)],
        'word_count': len(tokens),
        'unique_words': len(frequency),
    }


def translate_text(text, options):
    source = options.get('source_language') or 'auto'
    target = options.get('target_language') or 'en'
    return {
        'original_text': text,
        'translated_text': f'[TRANSLATED FROM {source} TO {target}]: {text}',
        'source_language': source,
        'target_language': target,
        'confidence': 0.85,
    }


class NLPService:
    """Run a processing type over text and store the query."""

    @classmethod
    def run(cls, processing_type, text, options=None):
        """
        Pure processing step. Returns (result, confidence, language).

        Raises:
            ValidationError: unknown processing type
        """
        options = options or {}
        language = options.get('language') or 'en'

        if processing_type == NLPProcessor.ProcessorType.SENTIMENT:
            result = analyze_sentiment(text)
            confidence = min(1.0, abs(result['score']) / 5)
        elif processing_type == NLPProcessor.ProcessorType.ENTITY:
            result = extract_entities(text)
            confidence = result['confidence']
        elif processing_type == NLPProcessor.ProcessorType.INTENT:
            result = classify_intent(text)
            confidence = result['confidence']
        elif processing_type == NLPProcessor.ProcessorType.TOPIC:
            result = extract_topics(text)
            confidence = 0.75
        elif processing_type == NLPProcessor.ProcessorType.TRANSLATION:
            result = translate_text(text, options)
            confidence = result['confidence']
            language = result['target_language']
        else:
            raise ValidationError(
                f"Unsupported processing type '{processing_type}'",
                details={'field': 'processing_type', 'allowed': list(NLPProcessor.ProcessorType.values)},
            )
        return result, confidence, language

    @staticmethod
    def get_or_create_processor(tenant, processing_type):
        processor, created = NLPProcessor.objects.get_or_create(
            tenant=tenant,
            processor_type=processing_type,
            defaults={'name': f'Default {processing_type} Processor', 'language': 'en'},
        )
        if created:
            logger.info(
                "NLP processor created",
                extra={'tenant_id': str(tenant.id), 'processor_type': processing_type}
            )
        return processor

    @classmethod
    def process_text(cls, tenant, user, text, processing_type, options=None):
        """
        Process text and persist an NLPQuery.

        Returns:
            NLPQuery
        """
        if not text or not text.strip():
            raise ValidationError('text is required', details={'field': 'text'})

        started = time.perf_counter()
        result, confidence, language = cls.run(processing_type, text, options)
        processing_ms = round((time.perf_counter() - started) * 1000, 3)

        with transaction.atomic():
            processor = cls.get_or_create_processor(tenant, processing_type)
            query = NLPQuery.objects.create(
                tenant=tenant,
                processor=processor,
                user=user if getattr(user, 'is_authenticated', False) else None,
                input_text=text,
                result=result,
                confidence=confidence,
                processing_ms=processing_ms,
                language=language,
            )
            cls._record_usage(processor, confidence, processing_ms)

        return query

    @staticmethod
    def _record_usage(processor, confidence, processing_ms):
        """Fold one query into the processor's running averages."""
        processor = NLPProcessor.objects.select_for_update().get(pk=processor.pk)
        count = processor.total_queries
        processor.avg_confidence = (processor.avg_confidence * count + confidence) / (count + 1)
        processor.avg_processing_ms = (processor.avg_processing_ms * count + processing_ms) / (count + 1)
        processor.total_queries = F('total_queries') + 1
        processor.last_used_at = timezone.now()
        processor.save(update_fields=[
            'avg_confidence', 'avg_processing_ms', 'total_queries', 'last_used_at', 'updated_at'
        ])

    @classmethod
    def batch_process(cls, tenant, user, texts, processing_type, options=None):
        if not texts:
            raise ValidationError('texts must be a non-empty list', details={'field': 'texts'})
        return [cls.process_text(tenant, user, text, processing_type, options) for text in texts]

    @staticmethod
    def processor_performance(tenant, processor_id):
        processor = NLPProcessor.objects.for_tenant(tenant).filter(id=processor_id).first()
        if processor is None:
            raise ResourceNotFound('NLP processor not found')

        recent = list(processor.queries.order_by('-created_at')[:100])
        count = len(recent)
        return {
            'processor_id': str(processor.id),
            'name': processor.name,
            'type': processor.processor_type,
            'total_queries': processor.total_queries,
            'recent_queries': count,
            'avg_confidence': sum(q.confidence for q in recent) / count if count else 0.0,
            'avg_processing_ms': sum(q.processing_ms for q in recent) / count if count else 0.0,
            'last_used_at': processor.last_used_at.isoformat() if processor.last_used_at else None,
        }
