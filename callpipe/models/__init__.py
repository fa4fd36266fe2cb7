from .call import Call
from .recording import Recording
from .transcript import Transcript
from .insight import Insight
from .pipeline import PipelineRun, PipelineStep, RunStatus, StepStatus, StepName, STEP_ORDER
