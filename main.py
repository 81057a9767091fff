# main.py
import time
from clock_board import ClockBoard
from config import CLOCK_TIMEZONE
from session_time import format_session_countdown
import logger, logging


def _report(board, state):
    st = board.status
    if st.active_session:
        logging.info("%s | %s ends in %s", state.now_time.strftime("%H:%M:%S"),
                     st.active_session.name, format_session_countdown(st.time_to_end))
    elif st.next_session:
        logging.info("%s | closed, %s starts in %s", state.now_time.strftime("%H:%M:%S"),
                     st.next_session.name, format_session_countdown(st.time_to_start))
    else:
        logging.info("%s | no sessions configured", state.now_time.strftime("%H:%M:%S"))


def run_clock():
    board = None
    try:
        board = ClockBoard(timezone=CLOCK_TIMEZONE)
        logging.info("session clock started for %s (%d sessions)", board.timezone, len(board.sessions))
        board.add_listener(_report)
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        logging.info("session clock stopped")
    except Exception:
        logging.exception("session clock crashed:")
    finally:
        if board is not None:
            board.close()


if __name__ == "__main__":
    run_clock()
