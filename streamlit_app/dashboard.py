# streamlit_app/dashboard.py
from __future__ import annotations
import os
import time
import pandas as pd
import streamlit as st

from enums.session_state import TradeStatus
from repositories.trade_repository import TradeRepository
from repositories.user_repository import UserRepository
from utils.errors import PersistenceError

DB_PATH = os.getenv("DB_PATH") or "./db.json"
trade_repo = TradeRepository(db_path=DB_PATH)
user_repo = UserRepository(db_path=DB_PATH)

st.set_page_config(page_title="Market Cap Trader", layout="wide")
st.title("📊 Market Cap Trader")

# Sidebar
st.sidebar.header("Opciones")
auto_refresh = st.sidebar.checkbox("Auto-refresh", value=True)
interval_s   = st.sidebar.number_input("Intervalo (seg)", min_value=2, max_value=60, value=5, step=1)
limit_rows   = st.sidebar.number_input("Filas a mostrar", min_value=20, max_value=1000, value=200, step=20)


def trades_frame(trades) -> pd.DataFrame:
    rows = [t.model_dump(mode="json") for t in trades]
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    return df


try:
    trades = trade_repo.list_all()
    users_total = user_repo.count()
except PersistenceError as e:
    st.error(f"No se pudo leer la base de datos: {e}")
    st.stop()

df = trades_frame(trades)

tab1, tab2 = st.tabs(["Trades", "Resumen"])

# --------------------------
# Trades
# --------------------------
with tab1:
    st.subheader("Registro de trades")
    if not df.empty:
        statuses = [s.value for s in TradeStatus]
        selected_status = st.selectbox("Filtrar por estado", options=["(Todos)"] + statuses)
        view = df
        if selected_status != "(Todos)":
            view = view[view["status"] == selected_status]

        symbols = sorted(view["token_symbol"].dropna().unique())
        selected_symbol = st.selectbox("Filtrar por símbolo", options=["(Todos)"] + symbols)
        if selected_symbol != "(Todos)":
            view = view[view["token_symbol"] == selected_symbol]

        pref = [
            "timestamp", "user_id", "token_symbol", "token_address", "buy_amount",
            "target_market_cap", "final_market_cap", "token_amount", "status", "buy_tx",
        ]
        cols = [c for c in pref if c in view.columns]
        st.dataframe(view[cols].head(int(limit_rows)), use_container_width=True)
    else:
        st.info("Aún no hay trades registrados.")

# --------------------------
# Resumen
# --------------------------
with tab2:
    st.subheader("Resumen")
    completed = df[df["status"] == TradeStatus.COMPLETED.value] if not df.empty else df
    pending = df[df["status"] == TradeStatus.PENDING.value] if not df.empty else df

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Usuarios", f"{users_total}")
    c2.metric("Trades completados", f"{len(completed)}")
    c3.metric("Trades pendientes", f"{len(pending)}")
    c4.metric("SOL invertido (total)", f"{df['buy_amount'].sum() if not df.empty else 0.0:.4f}")

    if not completed.empty:
        # cuánto por encima del objetivo se vendió (el objetivo es un umbral, no un precio exacto)
        overshoot = (completed["final_market_cap"] / completed["target_market_cap"] - 1) * 100
        st.metric("Exceso medio sobre objetivo (%)", f"{overshoot.mean():.2f}%")
        daily = completed.set_index("timestamp").resample("D")["buy_amount"].sum()
        st.bar_chart(daily)

    if not pending.empty:
        st.caption("Trades pendientes: compra ejecutada sin venta registrada (monitor activo, cancelado o abortado).")

# --------------------------
# Auto-refresh
# --------------------------
if auto_refresh:
    time.sleep(float(interval_s))
    st.rerun()
