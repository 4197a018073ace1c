from dotenv import load_dotenv
load_dotenv()

# Expose key classes for easier imports
from .models import Query, ClassificationResult, DetectedEntities, AggregatedReport
from .pipeline import ScoutPipeline, PipelineState
from .connection import ConnectionManager
