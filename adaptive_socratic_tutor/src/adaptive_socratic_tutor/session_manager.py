"""
Session Manager for History Persistence

Stores finalized SessionPerformance records, per-session message logs and
the session context a restored session needs to continue.
Uses Supabase when a client is given; always keeps an in-memory fallback.
"""

import logging
from typing import Any, Dict, List, Optional

from adaptive_socratic_tutor.dialogue_types import EnhancedMessage, SessionPerformance

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Persists session history.

    Performance records feed the adaptive controller and analytics engine;
    message logs allow a session's conversation to be restored.
    """

    PERFORMANCE_TABLE = "session_performance"
    MESSAGES_TABLE = "messages"
    SESSIONS_TABLE = "sessions"

    def __init__(self, supabase_client=None):
        """
        Initialize SessionManager.

        Args:
            supabase_client: Supabase client instance (optional)
        """
        self.supabase = supabase_client
        self.use_supabase = supabase_client is not None

        # Always initialize in-memory fallback (used in error cases)
        self._in_memory_history: Dict[str, List[SessionPerformance]] = {}
        self._in_memory_messages: Dict[str, List[Dict[str, Any]]] = {}
        self._in_memory_contexts: Dict[str, Dict[str, Any]] = {}

    async def save_performance(self, student_id: str, performance: SessionPerformance) -> bool:
        """
        Append a finalized session to the student's history.

        Returns:
            True if saved successfully, False otherwise
        """
        history = self._in_memory_history.setdefault(student_id, [])
        history[:] = [p for p in history if p.session_id != performance.session_id]
        history.append(performance)

        if not self.use_supabase:
            return True

        try:
            self.supabase.table(self.PERFORMANCE_TABLE) \
                .upsert({
                    'session_id': performance.session_id,
                    'student_id': student_id,
                    'performance': performance.to_dict(),
                    'start_time': performance.start_time.isoformat(),
                }) \
                .execute()
            logger.info(f"✅ [SessionManager] Saved performance for session {performance.session_id}")
            return True
        except Exception as e:
            logger.error(f"❌ [SessionManager] Error saving performance: {e}", exc_info=True)
            return False

    async def load_history(self, student_id: str) -> List[SessionPerformance]:
        """
        Load every SessionPerformance for a student, oldest first.

        Unreadable rows are skipped with a warning.
        """
        if not self.use_supabase:
            return sorted(self._in_memory_history.get(student_id, []), key=lambda p: p.start_time)

        try:
            result = self.supabase.table(self.PERFORMANCE_TABLE) \
                .select('performance') \
                .eq('student_id', student_id) \
                .order('start_time', desc=False) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [SessionManager] Error loading history: {e}")
            return sorted(self._in_memory_history.get(student_id, []), key=lambda p: p.start_time)

        history = []
        for row in result.data or []:
            try:
                history.append(SessionPerformance.from_dict(row['performance']))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"⚠️ [SessionManager] Skipping unreadable performance row: {e}")
        return history

    async def save_messages(self, session_id: str, messages: List[EnhancedMessage]) -> bool:
        """Replace the stored message log of a session."""
        rows = [m.to_dict() for m in messages if m.role != "system"]
        self._in_memory_messages[session_id] = rows

        if not self.use_supabase:
            return True

        try:
            self.supabase.table(self.MESSAGES_TABLE) \
                .delete() \
                .eq('session_id', session_id) \
                .execute()
            if rows:
                self.supabase.table(self.MESSAGES_TABLE) \
                    .insert([
                        {'session_id': session_id, 'role': r['role'], 'content': r['content'], 'created_at': r['timestamp']}
                        for r in rows
                    ]) \
                    .execute()
            return True
        except Exception as e:
            logger.error(f"❌ [SessionManager] Error saving messages: {e}", exc_info=True)
            return False

    async def load_messages(self, session_id: str) -> Optional[List[Dict[str, Any]]]:
        """
        Load a session's message log as role/content dicts.

        Returns:
            List of messages, or None if the session has none stored
        """
        if not self.use_supabase:
            rows = self._in_memory_messages.get(session_id)
            return [dict(r) for r in rows] if rows else None

        try:
            result = self.supabase.table(self.MESSAGES_TABLE) \
                .select('role, content, created_at') \
                .eq('session_id', session_id) \
                .order('created_at', desc=False) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [SessionManager] Error loading messages: {e}")
            rows = self._in_memory_messages.get(session_id)
            return [dict(r) for r in rows] if rows else None

        if not result.data:
            return None
        return [{"role": m["role"], "content": m["content"], "timestamp": m.get("created_at")} for m in result.data]

    async def save_session_context(self, session_id: str, context: Dict[str, Any]) -> bool:
        """
        Store the problem and mode fields a restored session needs to continue.

        Returns:
            True if saved successfully, False otherwise
        """
        self._in_memory_contexts[session_id] = dict(context)

        if not self.use_supabase:
            return True

        try:
            self.supabase.table(self.SESSIONS_TABLE) \
                .upsert({'session_id': session_id, 'context': context}) \
                .execute()
            return True
        except Exception as e:
            logger.error(f"❌ [SessionManager] Error saving session context: {e}", exc_info=True)
            return False

    async def load_session_context(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        Returns:
            The stored session context, or None if the session has none
        """
        if not self.use_supabase:
            context = self._in_memory_contexts.get(session_id)
            return dict(context) if context else None

        try:
            result = self.supabase.table(self.SESSIONS_TABLE) \
                .select('context') \
                .eq('session_id', session_id) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [SessionManager] Error loading session context: {e}")
            context = self._in_memory_contexts.get(session_id)
            return dict(context) if context else None

        if not result.data:
            return None
        return result.data[0].get('context')
