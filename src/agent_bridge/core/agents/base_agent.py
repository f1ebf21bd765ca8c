"""Abstract base class for agent backends"""
from abc import ABC, abstractmethod
from typing import Any, Optional

from agent_bridge.common.models import AnswerQuestionRequest, QueryRequest


class BaseAgent(ABC):
    """Describes how to invoke one agent CLI"""

    # Agents that keep reading stdin for more turns only exit on EOF, so their
    # input is closed once the result line arrives.
    close_input_on_result = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Agent name"""
        pass

    @property
    @abstractmethod
    def binary(self) -> str:
        """Executable that is spawned, used in launch error hints"""
        pass

    @abstractmethod
    def build_command(self, request: QueryRequest) -> list[str]:
        """
        Build the argv for one request

        Args:
            request: The query, with ``session_id`` already filled in when
                the conversation should be continued

        Returns:
            list[str]: Full command line, executable first
        """
        pass

    @abstractmethod
    def initial_input(self, request: QueryRequest) -> Optional[dict[str, Any]]:
        """JSON payload written to stdin right after spawn, if any"""
        pass

    def encode_answer(self, request: AnswerQuestionRequest) -> dict[str, Any]:
        """JSON payload that answers a question of the running agent"""
        return request.to_wire()
