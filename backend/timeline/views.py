"""
API Views for the Recruiting Progress Engine.

Function views over the timeline services. Each endpoint validates its
input, calls one service or calculator and renders the result with the
standard success / error_code envelope.
"""

from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.response import Response
from rest_framework.request import Request
from rest_framework.throttling import AnonRateThrottle
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from . import services
from .domain import Phase
from .errors import ErrorCode, InvalidScoreInput, PrerequisitesIncomplete
from .fit import calculate_fit_score, calculate_portfolio_health, get_fit_score_recommendation, get_recommended_divisions
from .models import AthleteProfile, Suggestion, Task
from .serializers import (
    AthleteTaskSerializer,
    DivisionRecommendationQuerySerializer,
    FitScoreInputSerializer,
    InteractionSerializer,
    SuggestionResolveSerializer,
    SuggestionSerializer,
    TaskStatusUpdateSerializer,
)
from .status_score import (
    StatusScoreCalculator,
    StatusScoreInputs,
    get_next_actions_for_status,
    get_status_advice,
)


# ============================================
# RATE LIMITING CLASSES
# ============================================

class ReadRateThrottle(AnonRateThrottle):
    """Rate limit for read endpoints - 60 requests per minute."""
    scope = 'timeline_read'
    rate = '60/min'


class WriteRateThrottle(AnonRateThrottle):
    """Rate limit for endpoints that change athlete data - 30 requests per minute."""
    scope = 'timeline_write'
    rate = '30/min'


class CalculatorRateThrottle(AnonRateThrottle):
    """Rate limit for the stateless calculators - 30 requests per minute."""
    scope = 'timeline_calculator'
    rate = '30/min'


# ============================================
# HELPERS
# ============================================

def _error(error_code: ErrorCode, message: str, http_status=status.HTTP_400_BAD_REQUEST, **extra) -> Response:
    body = {
        'success': False,
        'error_code': error_code.value,
        'message': message,
    }
    body.update(extra)
    return Response(body, status=http_status)


def _get_athlete(athlete_id: int):
    """Return (athlete, None) or (None, 404 response)."""
    try:
        return AthleteProfile.objects.get(pk=athlete_id), None
    except AthleteProfile.DoesNotExist:
        return None, _error(
            ErrorCode.ERR_ATHLETE_NOT_FOUND,
            f"Athlete {athlete_id} not found",
            status.HTTP_404_NOT_FOUND
        )


# ============================================
# API ENDPOINTS
# ============================================

@extend_schema(
    summary="API information",
    description="Get API information and available endpoints.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def api_info(request: Request) -> Response:
    """
    Return API information and available endpoints.

    GET /api/
    """
    return Response({
        'name': 'Recruiting Progress Engine API',
        'version': '1.0.0',
        'documentation': '/api/docs/',
        'features': [
            'Prerequisite-gated task timeline',
            'Milestone-driven recruiting phases',
            'Weighted status score with advice',
            'Division and fit recommendations',
            'Rule-based suggestions with de-duplication',
            'What Matters Now task ranking',
            'Recovery plans',
            'OpenAPI/Swagger documentation',
        ],
        'endpoints': {
            'GET /api/athletes/<id>/tasks/': 'Tasks with status and lock state',
            'PATCH /api/athletes/<id>/tasks/<task_id>/': 'Change a task status',
            'GET /api/athletes/<id>/phase/': 'Current phase and milestone progress',
            'POST /api/athletes/<id>/status/recalculate/': 'Recompute the status score',
            'GET /api/athletes/<id>/what-matters-now/': 'Top open tasks for the phase',
            'POST /api/athletes/<id>/suggestions/evaluate/': 'Run the suggestion rules',
            'GET /api/athletes/<id>/suggestions/': 'Visible suggestions',
            'PATCH /api/athletes/<id>/suggestions/<suggestion_id>/': 'Dismiss or complete a suggestion',
            'POST /api/athletes/<id>/interactions/': 'Log a coach interaction',
            'GET /api/athletes/<id>/portfolio/': 'School list balance',
            'POST /api/athletes/<id>/recovery/': 'Check and activate a recovery plan',
            'POST /api/status/score/': 'Status score from sub-scores',
            'GET /api/divisions/recommendation/': 'Other divisions to consider',
            'POST /api/fit-score/': 'Fit score from dimension points',
            'GET /api/docs/': 'Interactive API documentation',
            'GET /api/schema/': 'OpenAPI schema',
            'GET /api/': 'This info endpoint'
        },
        'error_codes': {
            code.value: code.name for code in ErrorCode
        }
    })


# ---------- Tasks ----------

@extend_schema(
    summary="List athlete tasks",
    description="Every catalog task merged with the athlete's status, lock state and blocking prerequisites.",
    parameters=[
        OpenApiParameter('grade', OpenApiTypes.INT, OpenApiParameter.QUERY, required=False,
                         description='Only tasks for this grade (9-12)'),
    ],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET'])
@throttle_classes([ReadRateThrottle])
def list_athlete_tasks(request: Request, athlete_id: int) -> Response:
    """
    GET /api/athletes/<id>/tasks/?grade=11
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    grade = request.query_params.get('grade')
    if grade is not None:
        try:
            grade = int(grade)
        except ValueError:
            return _error(ErrorCode.ERR_INVALID_INPUT, f"Invalid grade: {grade}")

    views = services.annotated_tasks(athlete, grade)
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'count': len(views),
        'tasks': [view.to_dict() for view in views],
    })


@extend_schema(
    summary="Change a task status",
    description="""
    Set the athlete's status for one task.

    Starting or completing a task requires every prerequisite to be
    completed; otherwise the response lists the blocking tasks. The phase
    is recalculated after the change.
    """,
    request=TaskStatusUpdateSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['PATCH'])
@throttle_classes([WriteRateThrottle])
def update_athlete_task(request: Request, athlete_id: int, task_id: str) -> Response:
    """
    PATCH /api/athletes/<id>/tasks/<task_id>/

    Request Body:
    {
        "status": "completed"      // not_started | in_progress | completed | skipped
    }
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    serializer = TaskStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return _error(
            ErrorCode.ERR_INVALID_STATUS,
            'Invalid status. Valid options: not_started, in_progress, completed, skipped',
            errors=serializer.errors
        )

    try:
        athlete_task = services.update_task_status(athlete, task_id, serializer.validated_data['status'])
    except Task.DoesNotExist:
        return _error(ErrorCode.ERR_TASK_NOT_FOUND, f"Task {task_id} not found", status.HTTP_404_NOT_FOUND)
    except PrerequisitesIncomplete as exc:
        return Response(exc.to_dict(), status=status.HTTP_400_BAD_REQUEST)

    athlete.refresh_from_db()
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'task': AthleteTaskSerializer(athlete_task).data,
        'current_phase': athlete.current_phase,
    })


# ---------- Phase & Status ----------

@extend_schema(
    summary="Current phase",
    description="Phase derived from completed milestones, with progress toward the next one.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Progress']
)
@api_view(['GET'])
@throttle_classes([ReadRateThrottle])
def athlete_phase(request: Request, athlete_id: int) -> Response:
    """
    GET /api/athletes/<id>/phase/
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    response_data = {'success': True, 'error_code': ErrorCode.SUCCESS.value}
    response_data.update(services.phase_overview(athlete))
    return Response(response_data)


@extend_schema(
    summary="Recalculate status score",
    description="Recompute the athlete's status score from their tasks, interactions and academics, and store it.",
    request=None,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Progress']
)
@api_view(['POST'])
@throttle_classes([WriteRateThrottle])
def recalculate_athlete_status(request: Request, athlete_id: int) -> Response:
    """
    POST /api/athletes/<id>/status/recalculate/
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    result = services.recalculate_status(athlete)
    athlete.refresh_from_db()
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'status': result.to_dict(),
        'advice': get_status_advice(result.label),
        'next_actions': get_next_actions_for_status(result.label, athlete.current_phase),
        'updated_at': athlete.status_updated_at,
    })


@extend_schema(
    summary="Calculate a status score",
    description="""
    Weighted status score from four sub-scores in [0, 100].

    Weights: task completion 35%, interaction frequency 25%,
    coach interest 25%, academic standing 15%.
    """,
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'task_completion_rate': {'type': 'number'},
                'interaction_frequency_score': {'type': 'number'},
                'coach_interest_score': {'type': 'number'},
                'academic_standing_score': {'type': 'number'},
                'phase': {'type': 'string', 'enum': [p.value for p in Phase]},
            },
            'required': [
                'task_completion_rate',
                'interaction_frequency_score',
                'coach_interest_score',
                'academic_standing_score',
            ]
        }
    },
    responses={200: OpenApiTypes.OBJECT},
    tags=['Calculators']
)
@api_view(['POST'])
@throttle_classes([CalculatorRateThrottle])
def calculate_status_score(request: Request) -> Response:
    """
    POST /api/status/score/

    Request Body:
    {
        "task_completion_rate": 80,
        "interaction_frequency_score": 60,
        "coach_interest_score": 70,
        "academic_standing_score": 90,
        "phase": "junior"                 // Optional: selects next actions, default freshman
    }
    """
    calculator = StatusScoreCalculator(thresholds=services.get_engine_config().status_thresholds)
    try:
        result = calculator.calculate(StatusScoreInputs.from_mapping(request.data))
    except InvalidScoreInput as exc:
        return Response(exc.to_dict(), status=status.HTTP_400_BAD_REQUEST)

    # Unknown or missing phases fall back to freshman
    phase = Phase.coerce(request.data.get('phase'))

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'status': result.to_dict(),
        'advice': get_status_advice(result.label),
        'phase': phase.value,
        'next_actions': get_next_actions_for_status(result.label, phase),
    })


@extend_schema(
    summary="What Matters Now",
    description="The highest-priority open required tasks for the athlete's current phase.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Progress']
)
@api_view(['GET'])
@throttle_classes([ReadRateThrottle])
def what_matters_now(request: Request, athlete_id: int) -> Response:
    """
    GET /api/athletes/<id>/what-matters-now/
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    items = services.what_matters_now(athlete)
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'phase': athlete.current_phase,
        'count': len(items),
        'tasks': [item.to_dict() for item in items],
    })


# ---------- Suggestions ----------

@extend_schema(
    summary="Evaluate suggestion rules",
    description="""
    Run every suggestion rule for the athlete, store new suggestions and
    surface the most urgent pending ones.

    A rule that fails is reported under rule_failures; the other rules'
    suggestions are still stored.
    """,
    request=None,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Suggestions']
)
@api_view(['POST'])
@throttle_classes([WriteRateThrottle])
def evaluate_suggestions(request: Request, athlete_id: int) -> Response:
    """
    POST /api/athletes/<id>/suggestions/evaluate/
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    generation = services.generate_suggestions(athlete)
    surfaced = services.surface_pending_suggestions(athlete)
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'created_count': len(generation.created),
        'surfaced': SuggestionSerializer(surfaced, many=True).data,
        'rule_failures': [failure.to_dict() for failure in generation.failures],
    })


@extend_schema(
    summary="List suggestions",
    description="Surfaced suggestions the athlete has not dismissed or completed, newest first.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Suggestions']
)
@api_view(['GET'])
@throttle_classes([ReadRateThrottle])
def list_suggestions(request: Request, athlete_id: int) -> Response:
    """
    GET /api/athletes/<id>/suggestions/
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    suggestions = services.visible_suggestions(athlete)
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'count': len(suggestions),
        'suggestions': SuggestionSerializer(suggestions, many=True).data,
    })


@extend_schema(
    summary="Dismiss or complete a suggestion",
    request=SuggestionResolveSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Suggestions']
)
@api_view(['PATCH'])
@throttle_classes([WriteRateThrottle])
def resolve_suggestion(request: Request, athlete_id: int, suggestion_id: int) -> Response:
    """
    PATCH /api/athletes/<id>/suggestions/<suggestion_id>/

    Request Body:
    {
        "dismissed": true         // or "completed": true
    }
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    try:
        suggestion = Suggestion.objects.get(pk=suggestion_id, athlete=athlete)
    except Suggestion.DoesNotExist:
        return _error(ErrorCode.ERR_INVALID_INPUT, f"Suggestion {suggestion_id} not found", status.HTTP_404_NOT_FOUND)

    serializer = SuggestionResolveSerializer(data=request.data)
    if not serializer.is_valid():
        return _error(ErrorCode.ERR_INVALID_INPUT, 'Set dismissed or completed to true', errors=serializer.errors)

    suggestion = services.resolve_suggestion(suggestion, **serializer.validated_data)
    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'suggestion': SuggestionSerializer(suggestion).data,
    })


# ---------- Interactions ----------

@extend_schema(
    summary="Log a coach interaction",
    description="""
    Store an interaction and refresh suggestions. Open log_interaction
    suggestions for the same school, or with no school, are marked completed.
    """,
    request=InteractionSerializer,
    responses={201: OpenApiTypes.OBJECT},
    tags=['Interactions']
)
@api_view(['POST'])
@throttle_classes([WriteRateThrottle])
def log_interaction(request: Request, athlete_id: int) -> Response:
    """
    POST /api/athletes/<id>/interactions/

    Request Body:
    {
        "school": 12,                         // Optional school id
        "interaction_type": "email",
        "sentiment": "positive",
        "occurred_at": "2026-10-01T15:00:00Z" // Optional, defaults to now
    }
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    serializer = InteractionSerializer(data=request.data, context={'athlete': athlete})
    if not serializer.is_valid():
        return _error(ErrorCode.ERR_INVALID_INPUT, 'Invalid interaction', errors=serializer.errors)

    interaction, generation = services.record_interaction(athlete, **serializer.validated_data)
    response_data = {
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'interaction': InteractionSerializer(interaction).data,
    }
    response_data.update(generation.to_dict())
    return Response(response_data, status=status.HTTP_201_CREATED)


# ---------- Schools & Fit ----------

@extend_schema(
    summary="Division recommendation",
    description="Other divisions worth considering given the fit score against one program.",
    parameters=[
        OpenApiParameter('division', OpenApiTypes.STR, OpenApiParameter.QUERY, required=False,
                         description='D1, D2, D3, NAIA or JUCO (aliases such as DI accepted)'),
        OpenApiParameter('fit_score', OpenApiTypes.NUMBER, OpenApiParameter.QUERY, required=False,
                         description='Fit score 0-100; missing or unknown values give no recommendation'),
    ],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Calculators']
)
@api_view(['GET'])
@throttle_classes([CalculatorRateThrottle])
def division_recommendation(request: Request) -> Response:
    """
    GET /api/divisions/recommendation/?division=D1&fit_score=45
    """
    serializer = DivisionRecommendationQuerySerializer(data=request.query_params)
    if not serializer.is_valid():
        return _error(ErrorCode.ERR_INVALID_INPUT, 'Invalid query parameters', errors=serializer.errors)

    recommendation = get_recommended_divisions(
        serializer.validated_data.get('division'),
        serializer.validated_data.get('fit_score')
    )
    response_data = {'success': True, 'error_code': ErrorCode.SUCCESS.value}
    response_data.update(recommendation.to_dict())
    return Response(response_data)


@extend_schema(
    summary="Calculate a fit score",
    description="""
    Sum fit dimension points into a 0-100 fit score and tier.

    Dimension caps: athletic 40, academic 25, opportunity 20, personal 15.
    """,
    request=FitScoreInputSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Calculators']
)
@api_view(['POST'])
@throttle_classes([CalculatorRateThrottle])
def fit_score(request: Request) -> Response:
    """
    POST /api/fit-score/

    Request Body:
    {
        "athletic": 32,
        "academic": 20,
        "opportunity": 15,
        "personal": 10
    }
    """
    serializer = FitScoreInputSerializer(data=request.data)
    if not serializer.is_valid():
        return _error(ErrorCode.ERR_INVALID_INPUT, 'Invalid fit dimensions', errors=serializer.errors)

    result = calculate_fit_score(serializer.validated_data)
    response_data = {'success': True, 'error_code': ErrorCode.SUCCESS.value}
    response_data.update(result.to_dict())
    response_data['recommendation'] = get_fit_score_recommendation(result.score, result.tier)
    return Response(response_data)


@extend_schema(
    summary="School portfolio health",
    description="Reach / match / safety balance of the athlete's school list.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Progress']
)
@api_view(['GET'])
@throttle_classes([ReadRateThrottle])
def portfolio_health(request: Request, athlete_id: int) -> Response:
    """
    GET /api/athletes/<id>/portfolio/
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    health = calculate_portfolio_health(services.build_rule_context(athlete).schools)
    response_data = {'success': True, 'error_code': ErrorCode.SUCCESS.value}
    response_data.update(health.to_dict())
    return Response(response_data)


# ---------- Recovery ----------

@extend_schema(
    summary="Activate a recovery plan",
    description="""
    Check the recovery triggers in priority order and, when one fires,
    add the plan's tasks to the athlete's timeline as recovery tasks.
    Existing task statuses are never changed.
    """,
    request=None,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Recovery']
)
@api_view(['POST'])
@throttle_classes([WriteRateThrottle])
def activate_recovery(request: Request, athlete_id: int) -> Response:
    """
    POST /api/athletes/<id>/recovery/
    """
    athlete, error = _get_athlete(athlete_id)
    if error:
        return error

    result = services.activate_recovery_plan(athlete)
    response_data = {'success': True, 'error_code': ErrorCode.SUCCESS.value}
    response_data.update(result.to_dict())
    if not result.triggered:
        response_data['message'] = "No recovery needed. Keep up the good work!"
    return Response(response_data)
